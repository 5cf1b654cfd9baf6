"""
ID token verification against the Keycloak realm JWKS.

The JWKS cache is an explicit object owned by whoever wires the app (see
`web.main.init_state`); nothing here keeps module-level state.

Checks, in order:
- header `kid` names a key in the realm JWKS (one forced refetch on a miss,
  which covers Keycloak key rotation);
- RS256 signature, `aud` == client id, `iss` == realm issuer;
- `azp`, when present, equals the client id;
- `exp`/`iat`/`nbf` within MAX_CLOCK_SKEW_SECONDS of the verifier clock.
"""
from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Mapping, Optional
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import OIDCConfig

MAX_CLOCK_SKEW_SECONDS = 5
JWKS_TTL_SECONDS = 300

Claims = Dict[str, object]


class IDTokenVerificationError(Exception):
    """Raised when the ID token fails verification; `code` is safe to log."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass
class _KeySet:
    keys_by_kid: Dict[str, dict]
    fetched_at: float


class JWKSCache:
    """Realm signing keys indexed by `kid`, refetched after `ttl_seconds`."""

    def __init__(self, ttl_seconds: int = JWKS_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sets: Dict[str, _KeySet] = {}
        self._lock = Lock()

    def key_for(self, cfg: OIDCConfig, kid: str) -> Optional[dict]:
        """Return the JWK for `kid`, refetching once if the cached set lacks it."""
        key = self._current(cfg).keys_by_kid.get(kid)
        if key is None:
            key = self._load(cfg).keys_by_kid.get(kid)
        return key

    def clear(self) -> None:
        with self._lock:
            self._sets.clear()

    def _current(self, cfg: OIDCConfig) -> _KeySet:
        with self._lock:
            cached = self._sets.get(cfg.certs_endpoint)
        if cached is not None and self._clock() - cached.fetched_at < self.ttl_seconds:
            return cached
        return self._load(cfg)

    def _load(self, cfg: OIDCConfig) -> _KeySet:
        keyset = _KeySet(keys_by_kid=_index_keys(_fetch_jwks(cfg.certs_endpoint)), fetched_at=self._clock())
        with self._lock:
            self._sets[cfg.certs_endpoint] = keyset
        return keyset


def _fetch_jwks(url: str) -> Mapping[str, object]:
    try:
        resp = requests.get(url, timeout=5)
    except requests.RequestException as exc:
        raise IDTokenVerificationError("jwks_fetch_failed") from exc
    if resp.status_code != 200:
        raise IDTokenVerificationError("jwks_fetch_failed")
    try:
        body = resp.json()
    except ValueError as exc:
        raise IDTokenVerificationError("jwks_invalid") from exc
    if not isinstance(body, dict) or not isinstance(body.get("keys"), list):
        raise IDTokenVerificationError("jwks_invalid")
    return body


def _index_keys(jwks: Mapping[str, object]) -> Dict[str, dict]:
    return {k["kid"]: k for k in jwks.get("keys", []) if isinstance(k, dict) and k.get("kid")}


def verify_id_token(
    *,
    id_token: str,
    cfg: OIDCConfig,
    cache: JWKSCache,
    now: Optional[float] = None,
) -> Claims:
    """Validate an ID token and return its claims.

    Raises IDTokenVerificationError with one of: missing_kid, unknown_kid,
    invalid_id_token, expired_id_token, jwks_fetch_failed, jwks_invalid.
    """
    try:
        kid = jwt.get_unverified_header(id_token).get("kid")
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc
    if not kid:
        raise IDTokenVerificationError("missing_kid")
    key = cache.key_for(cfg, kid)
    if key is None:
        raise IDTokenVerificationError("unknown_kid")

    try:
        claims = jwt.decode(
            id_token,
            key,
            # Pinned: the JWKS `alg` member is not trusted.
            algorithms=["RS256"],
            audience=cfg.client_id,
            issuer=cfg.issuer,
            options={"verify_exp": False, "verify_iat": False, "verify_nbf": False, "verify_at_hash": False},
        )
    except JOSEError as exc:
        raise IDTokenVerificationError("invalid_id_token") from exc

    azp = claims.get("azp")
    if azp is not None and azp != cfg.client_id:
        raise IDTokenVerificationError("invalid_id_token")
    _check_times(claims, time.time() if now is None else now)
    return claims


def _check_times(claims: Claims, now: float) -> None:
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise IDTokenVerificationError("invalid_id_token")
    if now > exp + MAX_CLOCK_SKEW_SECONDS:
        raise IDTokenVerificationError("expired_id_token")
    for name in ("iat", "nbf"):
        value = claims.get(name)
        if isinstance(value, (int, float)) and value - MAX_CLOCK_SKEW_SECONDS > now:
            raise IDTokenVerificationError("invalid_id_token")
