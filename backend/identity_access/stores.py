"""
In-memory stores for development: StateStore and SessionStore.

Why: Keep server-side state (CSRF state, PKCE code_verifier, nonce) and
sessions opaque to the client. For production, use the Postgres-backed
`DBSessionStore` (see stores_db.py).

Security: Cookies carry only an opaque session id. Claims stay server-side.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence
import secrets
import time


def _now() -> int:
    return int(time.time())


@dataclass
class StateRecord:
    state: str
    code_verifier: str
    nonce: str
    redirect: Optional[str]
    expires_at: int


class StateStore:
    def __init__(self):
        self._data: Dict[str, StateRecord] = {}

    def create(self, *, code_verifier: str, ttl_seconds: int = 900, redirect: Optional[str] = None) -> StateRecord:
        state = secrets.token_urlsafe(24)
        rec = StateRecord(
            state=state,
            code_verifier=code_verifier,
            nonce=secrets.token_urlsafe(16),
            redirect=redirect,
            expires_at=_now() + ttl_seconds,
        )
        self._data[state] = rec
        return rec

    def pop_valid(self, state: str) -> Optional[StateRecord]:
        """Consume a state exactly once; expired entries count as missing."""
        rec = self._data.pop(state, None)
        if not rec:
            return None
        if rec.expires_at < _now():
            return None
        return rec


@dataclass
class SessionRecord:
    session_id: str
    sub: str
    roles: list[str] = field(default_factory=list)
    name: str = ""
    email: Optional[str] = None
    username: Optional[str] = None
    id_token: Optional[str] = None
    expires_at: Optional[int] = None
    ttl_seconds: int = 3600


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(
        self,
        *,
        sub: str,
        roles: Sequence[str],
        name: str = "",
        email: Optional[str] = None,
        username: Optional[str] = None,
        id_token: Optional[str] = None,
        ttl_seconds: int = 3600,
    ) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(
            session_id=sid,
            sub=sub,
            roles=list(roles),
            name=name,
            email=email,
            username=username,
            id_token=id_token,
            expires_at=_now() + ttl_seconds,
            ttl_seconds=ttl_seconds,
        )
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)
