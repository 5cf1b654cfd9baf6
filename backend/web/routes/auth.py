"""
Authentication routes: browser login via Keycloak (PKCE), callback, logout.

Why:
    Credential validation belongs to Keycloak. These routes only start the
    redirect flow, verify the returned ID token and store the resulting claims
    in a server-side session keyed by an opaque cookie.

Permissions:
    Public (listed under /auth/ in the middleware allowlist).
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from backend.identity_access.principal import session_fields_from_claims
from backend.identity_access.tokens import IDTokenVerificationError, verify_id_token

from ..errors import PRIVATE_NO_STORE
from .security import is_same_origin

logger = logging.getLogger("schoolhub.identity_access")

auth_router = APIRouter(tags=["Auth"])

SESSION_COOKIE_NAME = "schoolhub_session"


def _is_inapp_path(value: str | None) -> bool:
    """Only absolute in-app paths are valid post-login redirects."""
    if not value or not value.startswith("/"):
        return False
    return not value.startswith("//") and "\\" not in value


def set_session_cookie(request: Request, response: Response, value: str, *, max_age: int | None = None) -> None:
    settings = request.app.state.settings
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        # Session cookies stay Secure in every environment; Lax keeps the IdP redirect working.
        secure=True,
        samesite="lax",
        path="/",
        max_age=max_age if settings.is_prod_like else None,
    )


def _error(code: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": code}, status_code=status_code, headers=dict(PRIVATE_NO_STORE))


@auth_router.get("/auth/login")
async def auth_login(request: Request, redirect: str | None = None):
    """Start the authorization code flow and redirect to Keycloak."""
    state_store = request.app.state.state_store
    oidc = request.app.state.oidc
    verifier = oidc.generate_code_verifier()
    rec = state_store.create(code_verifier=verifier, redirect=redirect if _is_inapp_path(redirect) else None)
    url = oidc.build_authorization_url(
        state=rec.state,
        code_challenge=oidc.code_challenge_s256(verifier),
        nonce=rec.nonce,
    )
    return RedirectResponse(url=url, status_code=302, headers=dict(PRIVATE_NO_STORE))


@auth_router.get("/auth/callback")
async def auth_callback(request: Request, code: str | None = None, state: str | None = None):
    if not code or not state:
        return _error("invalid_code_or_state")
    rec = request.app.state.state_store.pop_valid(state)
    if not rec:
        return _error("invalid_code_or_state")

    oidc = request.app.state.oidc
    try:
        tokens = oidc.exchange_code_for_tokens(code=code, code_verifier=rec.code_verifier)
    except Exception as exc:
        logger.warning("Token exchange failed: %s", exc.__class__.__name__)
        return _error("token_exchange_failed")
    id_token = tokens.get("id_token") if isinstance(tokens, dict) else None
    if not id_token or not isinstance(id_token, str):
        return _error("invalid_id_token")
    try:
        claims = verify_id_token(id_token=id_token, cfg=oidc.cfg, cache=request.app.state.jwks_cache)
    except IDTokenVerificationError as exc:
        logger.warning("ID token verification failed: %s", exc.code)
        return _error("invalid_id_token")
    if claims.get("nonce") != rec.nonce:
        return _error("invalid_nonce")

    fields = session_fields_from_claims(claims)
    if not fields["sub"]:
        return _error("invalid_id_token")
    if not fields["roles"]:
        # Session is still created; the first protected request answers role_missing.
        logger.info("Login without application role: sub=%s", fields["sub"])

    ttl = request.app.state.session_ttl
    sess = request.app.state.sessions.create(id_token=id_token, ttl_seconds=ttl, **fields)
    resp = RedirectResponse(url=rec.redirect or "/api/me", status_code=302, headers=dict(PRIVATE_NO_STORE))
    set_session_cookie(request, resp, sess.session_id, max_age=sess.ttl_seconds)
    return resp


@auth_router.post("/auth/logout")
async def auth_logout(request: Request):
    """Drop the server-side session and hand the browser to the IdP logout."""
    if not is_same_origin(request):
        return _error("csrf_violation", status_code=403)
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    id_token = None
    if sid:
        sessions = request.app.state.sessions
        try:
            rec = sessions.get(sid)
            id_token = getattr(rec, "id_token", None) if rec else None
            sessions.delete(sid)
        except Exception as exc:
            logger.warning("Session delete failed: %s", exc.__class__.__name__)
    post_logout = str(request.base_url).rstrip("/") + "/auth/login"
    url = request.app.state.oidc.build_logout_url(id_token_hint=id_token, post_logout_redirect_uri=post_logout)
    resp = RedirectResponse(url=url, status_code=303, headers=dict(PRIVATE_NO_STORE))
    resp.delete_cookie(SESSION_COOKIE_NAME, path="/", secure=True, httponly=True, samesite="lax")
    return resp
