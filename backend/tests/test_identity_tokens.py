"""
ID token verification and the JWKS cache.

jose's decode is stubbed so the tests pin our checks (kid lookup, algorithm
whitelist, azp, temporal claims) rather than the crypto library.
"""

from __future__ import annotations

import types

import pytest
import requests
from jose.exceptions import JOSEError

from backend.identity_access import tokens as tokens_mod
from backend.identity_access.oidc import OIDCConfig
from backend.identity_access.tokens import IDTokenVerificationError, JWKSCache, verify_id_token

CFG = OIDCConfig(
    base_url="http://kc:8080",
    realm="schoolhub",
    client_id="schoolhub-web",
    redirect_uri="http://app/auth/callback",
)
KEY = {"kid": "kid1", "kty": "RSA", "alg": "HS256"}
NOW = 1_700_000_000.0


class _StaticKeys:
    def __init__(self, *keys):
        self.keys = {k["kid"]: k for k in keys}

    def key_for(self, cfg, kid):
        return self.keys.get(kid)


@pytest.fixture
def header(monkeypatch: pytest.MonkeyPatch):
    value = {"kid": "kid1"}
    monkeypatch.setattr(tokens_mod.jwt, "get_unverified_header", lambda _: value)
    return value


@pytest.fixture
def decoded(monkeypatch: pytest.MonkeyPatch):
    """Claims returned by the stubbed jwt.decode plus the arguments it saw."""
    state = {"claims": {"sub": "staff-1", "exp": NOW + 60}, "seen": {}}

    def fake_decode(token, key, algorithms=None, audience=None, issuer=None, options=None):
        state["seen"].update(key=key, algorithms=list(algorithms or []), audience=audience, issuer=issuer)
        return state["claims"]

    monkeypatch.setattr(tokens_mod.jwt, "decode", fake_decode)
    return state


def _verify():
    return verify_id_token(id_token="t", cfg=CFG, cache=_StaticKeys(KEY), now=NOW)


def test_verify_pins_rs256_and_binds_audience_issuer(header, decoded):
    assert _verify() == decoded["claims"]
    assert decoded["seen"]["algorithms"] == ["RS256"]
    assert decoded["seen"]["key"] is KEY
    assert decoded["seen"]["audience"] == "schoolhub-web"
    assert decoded["seen"]["issuer"] == "http://kc:8080/realms/schoolhub"


def test_decode_errors_map_to_invalid_id_token(monkeypatch, header):
    def boom(*args, **kwargs):
        raise JOSEError("bad signature")

    monkeypatch.setattr(tokens_mod.jwt, "decode", boom)
    with pytest.raises(IDTokenVerificationError) as ei:
        _verify()
    assert ei.value.code == "invalid_id_token"


def test_missing_and_unknown_kid(header, decoded):
    header.pop("kid")
    with pytest.raises(IDTokenVerificationError) as ei:
        _verify()
    assert ei.value.code == "missing_kid"

    header["kid"] = "other"
    with pytest.raises(IDTokenVerificationError) as ei:
        _verify()
    assert ei.value.code == "unknown_kid"


def test_foreign_authorized_party_is_rejected(header, decoded):
    decoded["claims"] = {"sub": "x", "exp": NOW + 60, "azp": "other-client"}
    with pytest.raises(IDTokenVerificationError):
        _verify()
    decoded["claims"]["azp"] = "schoolhub-web"
    assert _verify()["sub"] == "x"


@pytest.mark.parametrize(
    "claims, code",
    [
        ({"sub": "x", "exp": NOW - 60}, "expired_id_token"),
        ({"sub": "x", "exp": NOW + 60, "iat": NOW + 600}, "invalid_id_token"),
        ({"sub": "x", "exp": NOW + 60, "nbf": NOW + 600}, "invalid_id_token"),
        ({"sub": "x"}, "invalid_id_token"),
    ],
)
def test_temporal_claims(header, decoded, claims, code):
    decoded["claims"] = claims
    with pytest.raises(IDTokenVerificationError) as ei:
        _verify()
    assert ei.value.code == code


def test_expiry_within_skew_is_accepted(header, decoded):
    decoded["claims"] = {"sub": "x", "exp": NOW - tokens_mod.MAX_CLOCK_SKEW_SECONDS + 1}
    assert _verify()["sub"] == "x"


class _JWKSServer:
    """Stands in for requests.get against the realm certs endpoint."""

    def __init__(self, *kids):
        self.kids = list(kids)
        self.calls = []

    def __call__(self, url, timeout=None):
        self.calls.append((url, timeout))
        body = {"keys": [{"kid": k, "kty": "RSA"} for k in self.kids]}
        return types.SimpleNamespace(status_code=200, json=lambda: body)


def test_jwks_cache_fetches_once_until_ttl(monkeypatch):
    server = _JWKSServer("kid1")
    now = [1000.0]
    monkeypatch.setattr(tokens_mod.requests, "get", server)
    cache = JWKSCache(ttl_seconds=300, clock=lambda: now[0])

    assert cache.key_for(CFG, "kid1")["kid"] == "kid1"
    assert cache.key_for(CFG, "kid1") is not None
    assert server.calls == [(CFG.certs_endpoint, 5)]

    now[0] += 301
    cache.key_for(CFG, "kid1")
    assert len(server.calls) == 2

    cache.clear()
    cache.key_for(CFG, "kid1")
    assert len(server.calls) == 3


def test_jwks_cache_refetches_once_for_rotated_key(monkeypatch):
    server = _JWKSServer("old")
    monkeypatch.setattr(tokens_mod.requests, "get", server)
    cache = JWKSCache(clock=lambda: 1000.0)

    assert cache.key_for(CFG, "old") is not None
    server.kids = ["new"]
    assert cache.key_for(CFG, "new")["kid"] == "new"
    assert len(server.calls) == 2
    assert cache.key_for(CFG, "gone") is None
    assert len(server.calls) == 3


def test_jwks_fetch_failures(monkeypatch):
    cache = JWKSCache()

    def unreachable(url, timeout=None):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(tokens_mod.requests, "get", unreachable)
    with pytest.raises(IDTokenVerificationError) as ei:
        cache.key_for(CFG, "kid1")
    assert ei.value.code == "jwks_fetch_failed"

    monkeypatch.setattr(
        tokens_mod.requests, "get", lambda url, timeout=None: types.SimpleNamespace(status_code=200, json=lambda: [])
    )
    with pytest.raises(IDTokenVerificationError) as ei:
        cache.key_for(CFG, "kid1")
    assert ei.value.code == "jwks_invalid"
