# OAuth2 data models.
# Created: 2026-10-02

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field


@dataclass
class OAuthClient:
    """Registered public OAuth2 client."""

    client_id: str
    client_name: str
    redirect_uris: list[str] = field(default_factory=list)
    allowed_scopes: list[str] = field(default_factory=lambda: ["openid", "profile", "email"])
    default_scopes: list[str] = field(default_factory=lambda: ["profile"])


class PKCESession(BaseModel):
    """One in-flight authorization attempt, keyed by ``state``.

    Stored as JSON in the key-value store for at most the PKCE session TTL.
    """

    state: str
    code_challenge: str
    user_id: str
    client_id: str
    redirect_uri: str
    scopes: list[str] = Field(default_factory=list)
    email: str | None = None
    name: str | None = None
    created_at: float = Field(default_factory=time.time)


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed token and the identifier embedded in it."""

    token: str
    jti: str
    expires_at: int


@dataclass
class TokenVerification:
    """Outcome of verifying a token.

    ``payload`` is filled whenever the signature checked out, even if the
    token was then rejected by the ledger (``reason`` says why).
    """

    valid: bool
    payload: dict[str, Any] | None = None
    reason: str | None = None

    @property
    def subject(self) -> str | None:
        return self.payload.get("sub") if self.payload else None

    @property
    def jti(self) -> str | None:
        return self.payload.get("jti") if self.payload else None

    @property
    def scopes(self) -> list[str]:
        if not self.payload:
            return []
        return str(self.payload.get("scope", "")).split()


@dataclass
class TokenPair:
    """OAuth2 access + refresh token pair as returned by the token endpoint."""

    access_token: str
    refresh_token: str
    scope: str
    expires_in: int
    token_type: str = "Bearer"

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": self.scope,
        }
