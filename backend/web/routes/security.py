"""
Same-origin check for state-changing requests (logout).

Only the Origin/Referer headers are consulted. X-Forwarded-* are trusted only
when SCHOOLHUB_TRUST_PROXY=true.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse

from fastapi import Request


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port or _default_port(scheme))


def _first(value: str) -> str:
    return (value or "").split(",")[0].strip()


def _server_origin(request: Request) -> tuple[str, str, int]:
    trust_proxy = (os.getenv("SCHOOLHUB_TRUST_PROXY", "false") or "").lower() == "true"
    if not trust_proxy:
        scheme = (request.url.scheme or "http").lower()
        host = (request.url.hostname or "").lower()
        return scheme, host, int(request.url.port or _default_port(scheme))

    scheme = (_first(request.headers.get("x-forwarded-proto", "")) or request.url.scheme or "http").lower()
    host_raw = _first(request.headers.get("x-forwarded-host", "") or request.headers.get("host", ""))
    port = _default_port(scheme)
    if ":" in host_raw:
        host_raw, port_str = host_raw.rsplit(":", 1)
        if port_str.isdigit():
            port = int(port_str)
    elif request.url.port:
        port = int(request.url.port)
    host = (host_raw or request.url.hostname or "").lower()
    xf_port = _first(request.headers.get("x-forwarded-port", ""))
    if xf_port.isdigit():
        port = int(xf_port)
    return scheme, host, port


def is_same_origin(request: Request) -> bool:
    """Require Origin (or Referer) to match the server origin.

    Requests with neither header are allowed so non-browser clients keep working.
    """
    claimed = request.headers.get("origin") or request.headers.get("referer")
    if not claimed:
        return True
    try:
        return _parse_origin(claimed) == _server_origin(request)
    except ValueError:
        return False
