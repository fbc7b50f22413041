# Protected resource returning the claims of the presented access token.
# Created: 2026-10-03

from __future__ import annotations

from fastapi import APIRouter, Depends

from tokenwarden.api.deps import rate_limit, require_access_token
from tokenwarden.api.oauth2.models import TokenVerification
from tokenwarden.api.v1.schemas.auth import MeResponse
from tokenwarden.security.rate_limiter import api_limiter

router = APIRouter(tags=["Me"])


@router.get("/me", response_model=MeResponse, dependencies=[Depends(rate_limit(api_limiter))])
def get_me(token: TokenVerification = Depends(require_access_token)):
    """Return who the access token belongs to.

    email and name are display fields copied into the token at issuance;
    they are informational and may be stale.
    """
    payload = token.payload
    return MeResponse(
        sub=payload["sub"],
        email=payload.get("email"),
        name=payload.get("name"),
        scopes=token.scopes,
    )
