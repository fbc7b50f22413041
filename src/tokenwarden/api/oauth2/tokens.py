# Token codec: signs and verifies access and refresh tokens.
# Created: 2026-10-02
#
# Tokens are HS256 JWTs. Access and refresh tokens are signed with separate
# keys. The jti of every token is generated here and nowhere else.

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from typing import Any

import jwt

from tokenwarden.api.oauth2.ledger import ACCESS, REFRESH, REVOKED, RevocationLedger
from tokenwarden.api.oauth2.models import IssuedToken, TokenVerification

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TTL = 3600
REFRESH_TOKEN_TTL = 30 * 24 * 3600

_REQUIRED_CLAIMS = ["sub", "jti", "iat", "exp", "typ"]


class TokenCodec:
    """Issue and verify signed tokens, consulting the ledger on verification."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        ledger: RevocationLedger,
        issuer: str,
        algorithm: str = "HS256",
        access_ttl: int = ACCESS_TOKEN_TTL,
        refresh_ttl: int = REFRESH_TOKEN_TTL,
        clock: Callable[[], float] = time.time,
    ):
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens need distinct signing keys")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.ledger = ledger
        self.issuer = issuer
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    # -- issuing -------------------------------------------------------

    def issue_access_token(
        self,
        subject: str,
        scopes: Iterable[str],
        display_fields: dict[str, Any] | None = None,
    ) -> IssuedToken:
        """Sign an access token for *subject*.

        ``display_fields`` (email, name) are informational only and are never
        used for authorization decisions.
        """
        claims: dict[str, Any] = {"scope": " ".join(sorted(set(scopes)))}
        for key in ("email", "name"):
            value = (display_fields or {}).get(key)
            if value:
                claims[key] = value
        return self._issue(subject, ACCESS, self._access_secret, self.access_ttl, claims)

    def issue_refresh_token(
        self,
        subject: str,
        parent_id: str | None = None,
        scopes: Iterable[str] = (),
    ) -> IssuedToken:
        """Sign a refresh token. ``parent_id`` is the jti of the token it replaces."""
        claims: dict[str, Any] = {"scope": " ".join(sorted(set(scopes)))}
        if parent_id:
            claims["pid"] = parent_id
        return self._issue(subject, REFRESH, self._refresh_secret, self.refresh_ttl, claims)

    def _issue(
        self,
        subject: str,
        kind: str,
        secret: str,
        ttl: int,
        claims: dict[str, Any],
    ) -> IssuedToken:
        now = int(self._clock())
        jti = uuid.uuid4().hex
        payload = {
            **claims,
            "sub": subject,
            "jti": jti,
            "typ": kind,
            "iss": self.issuer,
            "iat": now,
            "exp": now + ttl,
        }
        token = jwt.encode(payload, secret, algorithm=self.algorithm)
        self.ledger.track_token(subject, kind, jti, payload["exp"])
        return IssuedToken(token=token, jti=jti, expires_at=payload["exp"])

    # -- verification --------------------------------------------------

    def verify_access_token(self, token: str) -> TokenVerification:
        result = self._decode(token, self._access_secret, ACCESS)
        if result.valid and self.ledger.is_access_token_revoked(result.jti):
            return TokenVerification(False, result.payload, "revoked")
        return result

    def verify_refresh_token(self, token: str) -> TokenVerification:
        result = self._decode(token, self._refresh_secret, REFRESH)
        if result.valid:
            status = self.ledger.refresh_token_status(result.jti)
            if status is not None:
                reason = "revoked" if status == REVOKED else "used"
                return TokenVerification(False, result.payload, reason)
        return result

    def peek_refresh_token(self, token: str) -> dict[str, Any] | None:
        """Decode a refresh token while ignoring its expiry.

        The signature is still checked. Use the result only to locate records
        to invalidate, never to grant access: an expired token carries no
        authority.
        """
        try:
            payload = jwt.decode(
                token,
                self._refresh_secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False, "require": ["sub", "jti"]},
            )
        except jwt.InvalidTokenError:
            return None
        if payload.get("typ") != REFRESH:
            return None
        return payload

    def remaining_lifetime(self, payload: dict[str, Any]) -> int:
        return max(int(payload.get("exp", 0)) - int(self._clock()), 0)

    def _decode(self, token: str, secret: str, kind: str) -> TokenVerification:
        if not token:
            return TokenVerification(False, None, "malformed")
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            return TokenVerification(False, None, "expired")
        except jwt.InvalidSignatureError:
            return TokenVerification(False, None, "bad_signature")
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected %s token: %s", kind, exc)
            return TokenVerification(False, None, "malformed")

        if payload.get("typ") != kind:
            return TokenVerification(False, None, "wrong_type")
        return TokenVerification(True, payload)
