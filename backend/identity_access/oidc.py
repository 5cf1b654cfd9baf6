"""
Minimal OIDC client for the Keycloak realm that issues SchoolHub identities.

Why: Credential validation and session issuance belong to the identity
provider. This module only builds the browser redirect, exchanges the
authorization code and knows the realm endpoints; the FastAPI adapter turns
the verified claims into a server-side session.

Security: Uses PKCE (S256). The caller stores state, nonce and code_verifier
server-side (see stores.StateStore).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import base64
import hashlib
import os
from urllib.parse import urlencode

# Small indirection to ease monkeypatching in tests
import requests as http


def http_post(url: str, data: Dict[str, str], headers: Dict[str, str]):
    return http.post(url, data=data, headers=headers, timeout=5)


@dataclass(frozen=True)
class OIDCConfig:
    base_url: str  # internal base URL (server-to-server), e.g., http://keycloak:8080
    realm: str  # e.g., schoolhub
    client_id: str  # e.g., schoolhub-web
    redirect_uri: str  # e.g., https://app.localhost/auth/callback
    public_base_url: str | None = None  # browser-facing URL

    @property
    def issuer(self) -> str:
        return f"{self.base_url}/realms/{self.realm}"

    @property
    def auth_endpoint(self) -> str:
        base = self.public_base_url or self.base_url
        return f"{base}/realms/{self.realm}/protocol/openid-connect/auth"

    @property
    def token_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/token"

    @property
    def certs_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"

    @property
    def end_session_endpoint(self) -> str:
        base = self.public_base_url or self.base_url
        return f"{base}/realms/{self.realm}/protocol/openid-connect/logout"


def load_oidc_config() -> OIDCConfig:
    base_url = os.getenv("KC_BASE_URL", "http://localhost:8080").rstrip("/")
    realm = os.getenv("KC_REALM", "schoolhub")
    client_id = os.getenv("KC_CLIENT_ID", "schoolhub-web")
    redirect_uri = os.getenv("REDIRECT_URI", "https://app.localhost/auth/callback")
    public_base = (os.getenv("KC_PUBLIC_BASE_URL") or base_url).rstrip("/")
    return OIDCConfig(
        base_url=base_url,
        realm=realm,
        client_id=client_id,
        redirect_uri=redirect_uri,
        public_base_url=public_base,
    )


class OIDCClient:
    def __init__(self, config: OIDCConfig):
        self.cfg = config

    @staticmethod
    def generate_code_verifier(length: int = 64) -> str:
        """Generate a high-entropy URL-safe code_verifier (43..128 chars)."""
        return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii").rstrip("=")

    @staticmethod
    def code_challenge_s256(code_verifier: str) -> str:
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def build_authorization_url(self, *, state: str, code_challenge: str, nonce: Optional[str] = None) -> str:
        params = {
            "response_type": "code",
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "scope": "openid email profile",
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        if nonce:
            params["nonce"] = nonce
        return f"{self.cfg.auth_endpoint}?{urlencode(params)}"

    def build_logout_url(self, *, id_token_hint: Optional[str], post_logout_redirect_uri: str) -> str:
        params = {"client_id": self.cfg.client_id, "post_logout_redirect_uri": post_logout_redirect_uri}
        if id_token_hint:
            params["id_token_hint"] = id_token_hint
        return f"{self.cfg.end_session_endpoint}?{urlencode(params)}"

    def exchange_code_for_tokens(self, *, code: str, code_verifier: str) -> Dict[str, str]:
        """Exchange authorization code for tokens; raises ValueError on failure."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.cfg.client_id,
            "redirect_uri": self.cfg.redirect_uri,
            "code_verifier": code_verifier,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        resp = http_post(self.cfg.token_endpoint, data=data, headers=headers)
        if resp.status_code != 200:
            raise ValueError("token_exchange_failed")
        return resp.json()
