"""
Database-backed SessionStore for production use (Postgres).

Why: In-memory sessions are not durable and do not scale across instances. This
store persists sessions in Postgres while keeping the cookie opaque.

Security:
- Intended to be used with a dedicated session DSN; application roles must
  not read the `app_sessions` table.
- Only the opaque `session_id` is set in the cookie; all user context stays server-side.

Note: This module uses psycopg3. It is imported only when enabled via
`SESSIONS_BACKEND=db`. Tests use the in-memory store or a fake driver.
"""
from __future__ import annotations

from typing import Optional, Sequence
import logging
import os
import re
import time

try:
    import psycopg
    from psycopg.types.json import Json
    HAVE_PSYCOPG = True
except ImportError:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    Json = None  # type: ignore
    HAVE_PSYCOPG = False

from .stores import SessionRecord

logger = logging.getLogger("schoolhub.identity_access")

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")

_SELECT_COLUMNS = (
    "session_id, sub, roles, name, email, username, id_token, extract(epoch from expires_at)::bigint"
)


def _now() -> int:
    return int(time.time())


class DBSessionStore:
    """Postgres-backed session store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Falls back to SESSION_DATABASE_URL, then DATABASE_URL.
    table:
        Schema-qualified table name. Defaults to `public.app_sessions`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSessionStore")
        self._dsn = dsn or os.getenv("SESSION_DATABASE_URL") or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBSessionStore")
        # Identifier is interpolated into SQL below, so it must be validated here.
        if not _TABLE_RE.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

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
        expires_at = _now() + ttl_seconds
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {self._table} (session_id, sub, roles, name, email, username, id_token, expires_at) "
                    f"values (gen_random_uuid()::text, %s, %s, %s, %s, %s, %s, to_timestamp(%s)) returning session_id",
                    (sub, Json(list(roles)), name, email, username, id_token, expires_at),
                )
                row = cur.fetchone()
        sid = str(row[0]) if row else ""
        return SessionRecord(
            session_id=sid,
            sub=sub,
            roles=list(roles),
            name=name,
            email=email,
            username=username,
            id_token=id_token,
            expires_at=expires_at,
            ttl_seconds=ttl_seconds,
        )

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_SELECT_COLUMNS} from {self._table} where session_id = %s and expires_at > now()",
                    (session_id,),
                )
                row = cur.fetchone()
        if not row:
            return None
        roles = row[2] if isinstance(row[2], list) else []
        return SessionRecord(
            session_id=row[0],
            sub=row[1],
            roles=[str(r) for r in roles],
            name=row[3] or "",
            email=row[4],
            username=row[5],
            id_token=row[6],
            expires_at=int(row[7]) if row[7] is not None else None,
        )

    def delete(self, session_id: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(f"delete from {self._table} where session_id = %s", (session_id,))
        logger.info("Session deleted")
