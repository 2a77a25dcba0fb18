# services/auth.py
import time
from dataclasses import dataclass
from typing import Optional

from google.auth.transport import requests
from google.oauth2 import id_token

from services.errors import Unauthorized

# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------

ALLOWED_ISSUERS = {
    "https://accounts.google.com",
    "accounts.google.com",
}


@dataclass(frozen=True)
class Identity:
    owner_id: str
    email: Optional[str] = None


# -----------------------------------------------------------------------------
# Credential parsing
# -----------------------------------------------------------------------------

def bearer_token(authorization: str | None) -> str:
    if not authorization or not str(authorization).strip():
        raise Unauthorized("Missing authorization header", error_code="AUTH_MISSING_AUTH_HEADER")

    scheme, _, token = str(authorization).strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Invalid authorization header", error_code="AUTH_INVALID_AUTH_HEADER")
    return token.strip()


class IdentityVerifier:
    """Turns an ``Authorization`` header value into the caller's identity or raises Unauthorized."""

    def verify(self, authorization: str | None) -> Identity:
        raise NotImplementedError


# -----------------------------------------------------------------------------
# Google ID tokens
# -----------------------------------------------------------------------------

class GoogleIdentityVerifier(IdentityVerifier):
    def __init__(self, client_id: str, clock_skew_sec: int = 60, transport_request=None):
        if not client_id:
            raise RuntimeError("GOOGLE_CLIENT_ID not set")
        self.client_id = client_id
        self.clock_skew_sec = clock_skew_sec
        self._request = transport_request or requests.Request()

    def verify(self, authorization: str | None) -> Identity:
        token = bearer_token(authorization)
        payload = self.verify_id_token(token)
        return Identity(owner_id=str(payload["sub"]), email=payload.get("email"))

    def verify_id_token(self, token: str) -> dict:
        try:
            payload = id_token.verify_oauth2_token(token, self._request, self.client_id)
        except Exception:
            raise Unauthorized("Invalid token", error_code="AUTH_INVALID_TOKEN")

        issuer = str(payload.get("iss") or "").strip()
        if issuer not in ALLOWED_ISSUERS:
            raise Unauthorized("Invalid token issuer", error_code="AUTH_INVALID_ISSUER")

        audience = str(payload.get("aud") or "").strip()
        if audience != self.client_id:
            raise Unauthorized("Invalid token audience", error_code="AUTH_INVALID_AUDIENCE")

        authorized_party = str(payload.get("azp") or "").strip()
        if authorized_party and authorized_party != self.client_id:
            raise Unauthorized("Invalid token authorized party", error_code="AUTH_INVALID_AUTHORIZED_PARTY")

        now = int(time.time())
        exp = int(payload.get("exp") or 0)
        if exp <= now - self.clock_skew_sec:
            raise Unauthorized("Token expired", error_code="AUTH_TOKEN_EXPIRED")

        nbf = int(payload.get("nbf") or 0)
        if nbf and nbf > now + self.clock_skew_sec:
            raise Unauthorized("Token not valid yet", error_code="AUTH_TOKEN_NOT_YET_VALID")

        if not str(payload.get("sub") or "").strip():
            raise Unauthorized("Subject not found in token", error_code="AUTH_SUBJECT_MISSING")

        return payload
