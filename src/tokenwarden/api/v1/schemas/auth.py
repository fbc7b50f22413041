# Auth schemas.
# Created: 2026-10-03

from __future__ import annotations

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=8, max_length=256)
    email: str | None = None
    name: str | None = None


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: str
    username: str
    email: str | None = None
    name: str | None = None


class MeResponse(BaseModel):
    """Claims of the access token presented to a protected resource."""

    sub: str
    email: str | None = None
    name: str | None = None
    scopes: list[str]
