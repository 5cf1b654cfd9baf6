"SchoolHub API"
from __future__ import annotations

import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from backend.identity_access.errors import RoleMissingError, UnauthenticatedError
from backend.identity_access.oidc import OIDCClient, load_oidc_config
from backend.identity_access.principal import resolve_principal
from backend.identity_access.stores import SessionStore, StateStore
from backend.identity_access.tokens import JWKSCache
from backend.tenancy.cache import ListingCache
from backend.tenancy.repo_memory import InMemorySchoolRepo

from .config import AppSettings, ensure_secure_config_on_startup
from .errors import PRIVATE_NO_STORE, error_response, register_error_handlers
from .routes.auth import SESSION_COOKIE_NAME, auth_router
from .routes.me import me_router
from .routes.platform import platform_router
from .routes.schools import schools_router
from .routes.teachers import teachers_router


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _should_load_dotenv() -> bool:
    """Load a local .env outside pytest unless SCHOOLHUB_ENABLE_DOTENV says otherwise."""
    if _under_pytest():
        return False
    flag = (os.getenv("SCHOOLHUB_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

ensure_secure_config_on_startup()

logger = logging.getLogger("schoolhub.web")
SETTINGS = AppSettings()


def _build_session_store():
    if (not _under_pytest()) and SETTINGS.sessions_backend == "db":
        from backend.identity_access.stores_db import DBSessionStore

        return DBSessionStore()
    return SessionStore()


def _build_school_repo():
    if (not _under_pytest()) and SETTINGS.schools_backend == "db":
        from backend.tenancy.repo_db import DBSchoolRepo

        return DBSchoolRepo()
    logger.info("Using in-memory school repository (SCHOOLS_BACKEND=%s)", SETTINGS.schools_backend)
    return InMemorySchoolRepo()


def init_state(target: FastAPI) -> None:
    """(Re)build every per-app collaborator. Tests call this for a clean slate.

    Numeric settings are read once here so requests never parse the environment.
    """
    numbers = SETTINGS.numeric_snapshot()
    target.state.settings = SETTINGS
    target.state.page_size = numbers["page_size"]
    target.state.session_ttl = numbers["session_ttl"]
    target.state.sessions = _build_session_store()
    target.state.state_store = StateStore()
    target.state.oidc = OIDCClient(load_oidc_config())
    target.state.jwks_cache = JWKSCache()
    target.state.school_repo = _build_school_repo()
    target.state.listing_cache = ListingCache(ttl_seconds=numbers["listing_cache_ttl"])


app = FastAPI(title="SchoolHub", description="Multi-tenant school management API", version="0.1.0")
init_state(app)
register_error_handlers(app)

app.include_router(auth_router)
app.include_router(me_router)
app.include_router(platform_router)
app.include_router(schools_router)
app.include_router(teachers_router)


def _is_public_path(path: str) -> bool:
    return path.startswith("/auth/") or path in ("/health", "/favicon.ico")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    try:
        principal = resolve_principal(sid, sessions=request.app.state.sessions)
    except UnauthenticatedError as exc:
        if path.startswith("/api/"):
            return error_response(exc)
        return RedirectResponse(url="/auth/login", status_code=302)
    except RoleMissingError as exc:
        return error_response(exc)

    request.state.principal = principal
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


@app.get("/health")
async def health():
    return JSONResponse({"status": "healthy"}, headers=dict(PRIVATE_NO_STORE))
