# OAuth2 router for the authorize, token and revoke endpoints plus metadata.
# Created: 2026-10-03
#
# Mounted at the application root (/oauth/*), not under /api/v1.
# The authorization server does blocking store I/O, so every call into it
# runs in the threadpool.

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from tokenwarden.api.deps import get_resource_owner, rate_limit
from tokenwarden.api.oauth2 import errors
from tokenwarden.api.oauth2.errors import OAuthError
from tokenwarden.api.v1.schemas.oauth2 import (
    OAuthErrorResponse,
    RevokeRequest,
    TokenRequest,
    TokenResponse,
)
from tokenwarden.security.rate_limiter import auth_limiter, token_limiter
from tokenwarden.users import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth2"])

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}
_ERROR_RESPONSES = {400: {"model": OAuthErrorResponse}, 401: {"model": OAuthErrorResponse}}


def _error_response(error: OAuthError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=_NO_STORE)


async def _read_params(request: Request) -> dict | None:
    """Read a form-encoded or JSON body into a dict. None if unparseable."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


@router.get(
    "/oauth/authorize",
    status_code=302,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(rate_limit(auth_limiter))],
)
async def authorize(
    client_id: str | None = Query(None),
    redirect_uri: str | None = Query(None),
    code_challenge: str | None = Query(None),
    code_challenge_method: str | None = Query(None),
    state: str | None = Query(None),
    scope: str | None = Query(None),
    response_type: str = Query("code"),
    user: User | None = Depends(get_resource_owner),
):
    """Validate an authorization request and redirect back with a one-time code."""
    from tokenwarden.api.oauth2.server import get_oauth_server

    if response_type != "code":
        return _error_response(
            OAuthError("unsupported_response_type", "response_type must be code")
        )

    server = get_oauth_server()
    redirect_url, error = await run_in_threadpool(
        server.authorize,
        client_id=client_id,
        redirect_uri=redirect_uri,
        code_challenge=code_challenge,
        code_challenge_method=code_challenge_method,
        state=state,
        scope=scope,
        user=user,
    )
    if error:
        logger.info("Authorization request rejected: %s (%s)", error.error, error.description)
        return _error_response(error)

    return RedirectResponse(redirect_url, status_code=302)


@router.post(
    "/oauth/token",
    response_model=TokenResponse,
    responses=_ERROR_RESPONSES,
    dependencies=[Depends(rate_limit(token_limiter))],
)
async def token_exchange(request: Request):
    """Exchange an authorization code or a refresh token for a new token pair."""
    from tokenwarden.api.oauth2.server import get_oauth_server

    params = await _read_params(request)
    if params is None:
        return _error_response(errors.invalid_request("Request body must be a form or JSON object"))
    try:
        body = TokenRequest.model_validate(params)
    except ValidationError:
        return _error_response(errors.invalid_request("Malformed token request"))

    server = get_oauth_server()

    if body.grant_type == "authorization_code":
        result, error = await run_in_threadpool(
            server.exchange,
            code=body.code,
            code_verifier=body.code_verifier,
            state=body.state,
            client_id=body.client_id,
            redirect_uri=body.redirect_uri,
        )
    elif body.grant_type == "refresh_token":
        result, error = await run_in_threadpool(server.refresh, body.refresh_token)
    elif not body.grant_type:
        error = errors.invalid_request("grant_type is required")
    else:
        error = OAuthError(errors.UNSUPPORTED_GRANT_TYPE, f"Unsupported grant_type: {body.grant_type}")

    if error:
        return _error_response(error)

    return JSONResponse(content=TokenResponse(**result).model_dump(), headers=_NO_STORE)


@router.post("/oauth/revoke")
async def revoke_token(request: Request):
    """Revoke an access or refresh token. Always succeeds (RFC 7009)."""
    from tokenwarden.api.oauth2.server import get_oauth_server

    params = await _read_params(request) or {}
    try:
        body = RevokeRequest.model_validate(params)
    except ValidationError:
        body = RevokeRequest()

    server = get_oauth_server()
    await run_in_threadpool(server.revoke, body.token, body.token_type_hint)
    return {"revoked": True}


@router.get("/.well-known/oauth-authorization-server")
async def authorization_server_metadata():
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    from tokenwarden.api.oauth2.server import get_oauth_server

    return get_oauth_server().metadata()
