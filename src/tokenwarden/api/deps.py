# Shared FastAPI dependencies for the API layer.
# Created: 2026-10-03

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from tokenwarden.api.oauth2.models import TokenVerification
from tokenwarden.security.rate_limiter import RateLimiter
from tokenwarden.users import User

logger = logging.getLogger(__name__)

SESSION_COOKIE = "tokenwarden_session"


def get_resource_owner(request: Request) -> User | None:
    """Resolve the logged-in user from the session cookie, if any."""
    from tokenwarden.api.oauth2.server import get_oauth_server
    from tokenwarden.config import get_settings
    from tokenwarden.security.session_tokens import verify_session_token

    session_token = request.cookies.get(SESSION_COOKIE)
    if not session_token:
        return None

    secret = get_settings().session_secret.get_secret_value()
    user_id = verify_session_token(session_token, secret)
    if user_id is None:
        return None
    return get_oauth_server().users.get(user_id)


def rate_limit(limiter: RateLimiter):
    """FastAPI dependency applying *limiter* per client IP.

    Disabled unless the app sets ``app.state.rate_limit_enabled``.
    """

    def _check(request: Request) -> None:
        if not getattr(request.app.state, "rate_limit_enabled", False):
            return
        client_ip = request.client.host if request.client else "unknown"
        info = limiter.check(client_ip)
        if not info.allowed:
            raise HTTPException(
                status_code=429,
                detail={"error": "slow_down", "error_description": "Too many requests"},
                headers=info.headers(),
            )

    return _check


def require_access_token(request: Request) -> TokenVerification:
    """Verify the bearer access token on a protected request.

    Usage::

        @router.get("/me")
        def me(token: TokenVerification = Depends(require_access_token)): ...
    """
    from tokenwarden.api.oauth2.server import get_oauth_server

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail={"error": "invalid_token", "error_description": "Bearer token required"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = auth_header.removeprefix("Bearer ").strip()
    verification = get_oauth_server().verify_access_token(token)
    if not verification.valid:
        logger.debug("Rejected access token: %s", verification.reason)
        raise HTTPException(
            status_code=401,
            detail={"error": "invalid_token", "error_description": "Access token is not valid"},
            headers={"WWW-Authenticate": 'Bearer error="invalid_token"'},
        )
    request.state.token = verification
    return verification


def require_scope(*scopes: str):
    """FastAPI dependency that checks the access token carries a scope.

    Usage::

        @router.get("/me", dependencies=[Depends(require_scope("profile"))])
        async def me(...): ...

    The token must hold at least one of the listed scopes.
    """

    def _check(token: TokenVerification = Depends(require_access_token)) -> TokenVerification:
        required = set(scopes)
        if not set(token.scopes) & required:
            raise HTTPException(
                status_code=403,
                detail={
                    "error": "insufficient_scope",
                    "error_description": f"Requires scope: {' or '.join(sorted(required))}",
                },
                headers={"WWW-Authenticate": 'Bearer error="insufficient_scope"'},
            )
        return token

    return _check
