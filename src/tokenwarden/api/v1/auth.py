# Auth router: register, login and logout.
# Created: 2026-10-03
#
# Login sets an HTTP-only session cookie that identifies the resource owner
# at /oauth/authorize. It is not an OAuth token.

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from tokenwarden.api.deps import SESSION_COOKIE, rate_limit
from tokenwarden.api.v1.schemas.auth import LoginRequest, RegisterRequest, UserResponse
from tokenwarden.security.rate_limiter import auth_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.post("/auth/register", status_code=201, response_model=UserResponse)
async def register(body: RegisterRequest):
    """Create a user account."""
    from tokenwarden.api.oauth2.server import get_oauth_server
    from tokenwarden.users import UserExistsError

    users = get_oauth_server().users
    try:
        user = await run_in_threadpool(
            users.register, body.username, body.password, body.email, body.name
        )
    except UserExistsError:
        raise HTTPException(status_code=409, detail="Username already taken")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UserResponse(**user.model_dump())


@router.post("/auth/login", dependencies=[Depends(rate_limit(auth_limiter))])
async def login(body: LoginRequest):
    """Check credentials and set the session cookie."""
    from tokenwarden.api.oauth2.server import get_oauth_server
    from tokenwarden.config import get_settings
    from tokenwarden.security.session_tokens import create_session_token

    server = get_oauth_server()
    user = await run_in_threadpool(server.users.authenticate, body.username, body.password)
    if user is None:
        server.audit.log_security_event(
            "login_failed", actor=body.username, target="user", status="denied"
        )
        # Same answer for unknown user and wrong password
        raise HTTPException(status_code=401, detail="Invalid username or password")

    settings = get_settings()
    session_token = create_session_token(
        settings.session_secret.get_secret_value(),
        user.id,
        ttl_seconds=settings.login_session_ttl,
    )

    logger.info("User logged in: %s", user.username)
    response = JSONResponse(content={"ok": True, "user": user.model_dump()})
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
        max_age=settings.login_session_ttl,
    )
    return response


@router.post("/auth/logout")
async def logout():
    """Clear the session cookie."""
    response = JSONResponse(content={"ok": True})
    response.delete_cookie(key=SESSION_COOKIE, path="/")
    return response
