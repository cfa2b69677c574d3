"""
Token-specific Pydantic models and helpers
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field

# Response keys that may hold the token, in priority order
TOKEN_FIELDS = ("accessToken", "access_token", "token", "jwt", "id_token")


class TokenSource(str, Enum):
    """Where a bearer token came from"""
    FORWARDED = "forwarded-from-request"
    USER_PASSWORD = "username-password"
    CLIENT_CREDENTIALS = "client-credentials"
    OFFER_API = "pfapi-client-credentials"


class TokenResult(BaseModel):
    """Result model for token operations"""
    token: str = Field(..., description="Bearer token")
    source: TokenSource = Field(..., description="How the token was obtained")


def extract_token(payload: Any) -> Optional[str]:
    """
    Pull a token out of an authentication response

    The engine answers either with a bare (possibly quoted) string or with a JSON
    object holding the token under one of TOKEN_FIELDS.
    """
    if isinstance(payload, str):
        token = payload.strip()
        if token.startswith('"'):
            token = token[1:]
        if token.endswith('"'):
            token = token[:-1]
        return token or None

    if isinstance(payload, dict):
        for key in TOKEN_FIELDS:
            value = payload.get(key)
            if value:
                return value

    return None


def bearer_from_header(authorization: Optional[str]) -> Optional[str]:
    """Token from an inbound `Authorization: Bearer ...` header"""
    header = authorization or ""
    if not header.lower().startswith("bearer "):
        return None
    return header[7:].strip() or None
