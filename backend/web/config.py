"""
Configuration and startup security checks for SchoolHub.

Why: Prevent accidental insecure deployments while keeping local development
permissive. Settings are read from the environment on access so tests can
monkeypatch variables without reloading modules.
"""
from __future__ import annotations

import os

PROD_LIKE_ENVS = frozenset({"prod", "production", "stage", "staging"})


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in PROD_LIKE_ENVS


def _int_env(name: str, default: int, *, minimum: int = 0) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        raise SystemExit(f"Refusing to start: {name} must be an integer (got {raw!r}).")


class AppSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return (os.getenv("SCHOOLHUB_ENV", "dev") or "dev").lower()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env

    @property
    def is_prod_like(self) -> bool:
        return _is_prod_like(self.environment)

    @property
    def sessions_backend(self) -> str:
        return (os.getenv("SESSIONS_BACKEND", "memory") or "memory").lower()

    @property
    def schools_backend(self) -> str:
        return (os.getenv("SCHOOLS_BACKEND", "memory") or "memory").lower()

    @property
    def listing_cache_ttl(self) -> int:
        return _int_env("SCHOOL_LISTING_CACHE_TTL", 300)

    @property
    def page_size(self) -> int:
        return _int_env("SCHOOL_PAGE_SIZE", 10, minimum=1)

    @property
    def session_ttl(self) -> int:
        return _int_env("SESSION_TTL_SECONDS", 3600, minimum=60)

    def numeric_snapshot(self) -> dict:
        """Parse every numeric setting now; a typo raises SystemExit at boot."""
        return {
            "listing_cache_ttl": self.listing_cache_ttl,
            "page_size": self.page_size,
            "session_ttl": self.session_ttl,
        }


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Every environment: numeric settings must parse.

    Prod-like environments only:
    - Sessions and schools must be DB-backed; in-memory stores lose state and
      cannot be shared across instances.
    - DATABASE_URL must not disable TLS.
    - Keycloak endpoints must use https.
    """
    settings = AppSettings()
    settings.numeric_snapshot()
    if not _is_prod_like(os.getenv("SCHOOLHUB_ENV", "dev")):
        return

    if settings.sessions_backend != "db":
        raise SystemExit("Refusing to start: SESSIONS_BACKEND must be 'db' in production/staging.")
    if settings.schools_backend != "db":
        raise SystemExit("Refusing to start: SCHOOLS_BACKEND must be 'db' in production/staging.")

    for key in ("DATABASE_URL", "SCHOOLS_DATABASE_URL", "SESSION_DATABASE_URL"):
        if "sslmode=disable" in (os.getenv(key, "") or ""):
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require."
            )

    for var_name in ("KC_BASE_URL", "KC_PUBLIC_BASE_URL"):
        val = (os.getenv(var_name, "") or "").strip().lower()
        if val.startswith("http://"):
            raise SystemExit(f"Refusing to start: {var_name} must use https in production (got http).")

