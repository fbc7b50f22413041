# OAuth2 schemas.
# Created: 2026-10-02

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class TokenRequest(BaseModel):
    """Token exchange or refresh request (form-encoded or JSON).

    ``grant_type`` is not constrained here so that an unknown value can be
    reported as ``unsupported_grant_type`` rather than a validation error.
    """

    model_config = ConfigDict(extra="ignore")

    grant_type: str | None = None
    code: str | None = None
    code_verifier: str | None = None
    state: str | None = None
    client_id: str | None = None
    redirect_uri: str | None = None
    refresh_token: str | None = None


class TokenResponse(BaseModel):
    """OAuth2 token response."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    scope: str


class RevokeRequest(BaseModel):
    """Token revocation request."""

    model_config = ConfigDict(extra="ignore")

    token: str | None = None
    token_type_hint: str | None = None


class OAuthErrorResponse(BaseModel):
    error: str
    error_description: str
