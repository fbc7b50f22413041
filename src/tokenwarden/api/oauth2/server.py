# OAuth2 Authorization Server with PKCE support.
# Created: 2026-10-02
#
# Implements the authorization code flow with mandatory S256 PKCE (RFC 7636)
# for public clients, refresh token rotation with reuse detection, and
# token revocation (RFC 7009).
#
# Validation and grant failures come back as (None, OAuthError). StoreError
# is not caught here: an unreachable store is a server_error, never an
# "invalid token".

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import urlencode

from tokenwarden.api.oauth2 import errors
from tokenwarden.api.oauth2.clients import ClientRegistry
from tokenwarden.api.oauth2.errors import OAuthError
from tokenwarden.api.oauth2.ledger import REVOKED, RevocationLedger
from tokenwarden.api.oauth2.models import OAuthClient, PKCESession, TokenPair, TokenVerification
from tokenwarden.api.oauth2.pkce import S256, is_valid_pkce_value, verify_pkce
from tokenwarden.api.oauth2.sessions import AuthorizationCodeStore, PKCESessionStore
from tokenwarden.api.oauth2.store import KeyValueStore, create_store
from tokenwarden.api.oauth2.tokens import TokenCodec
from tokenwarden.security.audit import AuditLogger, AuditSeverity, get_audit_logger
from tokenwarden.users import User, UserDirectory

logger = logging.getLogger(__name__)

MAX_STATE_LENGTH = 512


class AuthorizationServer:
    """OAuth2 authorization server with PKCE."""

    def __init__(
        self,
        codec: TokenCodec,
        sessions: PKCESessionStore,
        codes: AuthorizationCodeStore,
        clients: ClientRegistry,
        users: UserDirectory,
        audit: AuditLogger | None = None,
    ):
        self.codec = codec
        self.sessions = sessions
        self.codes = codes
        self.clients = clients
        self.users = users
        self.audit = audit or AuditLogger()

    @property
    def ledger(self) -> RevocationLedger:
        return self.codec.ledger

    @property
    def store(self) -> KeyValueStore:
        return self.sessions.store

    # -- authorization endpoint ------------------------------------------

    def authorize(
        self,
        client_id: str | None,
        redirect_uri: str | None,
        code_challenge: str | None,
        code_challenge_method: str | None,
        state: str | None,
        scope: str | None = None,
        user: User | None = None,
    ) -> tuple[str | None, OAuthError | None]:
        """Validate an authorization request and issue a one-time code.

        Returns (redirect_url, error). Nothing is persisted unless every
        check passes.
        """
        if not client_id:
            return None, errors.invalid_request("client_id is required")
        client = self.clients.get(client_id)
        if client is None:
            return None, errors.invalid_client()

        if not redirect_uri:
            return None, errors.invalid_request("redirect_uri is required")
        if not self.clients.is_redirect_allowed(client, redirect_uri):
            return None, errors.invalid_request("redirect_uri is not registered for this client")

        if code_challenge_method != S256:
            return None, errors.invalid_request("code_challenge_method must be S256")

        if not is_valid_pkce_value(code_challenge):
            return None, errors.invalid_request(
                "code_challenge must be 43-128 characters of base64url"
            )

        if not state:
            return None, errors.invalid_request("state is required")
        if len(state) > MAX_STATE_LENGTH:
            return None, errors.invalid_request("state is too long")

        scopes, error = self._resolve_scopes(client, scope)
        if error:
            return None, error

        if user is None:
            return None, OAuthError(
                errors.LOGIN_REQUIRED, "The resource owner is not authenticated", 401
            )

        session = PKCESession(
            state=state,
            code_challenge=code_challenge,
            user_id=user.id,
            client_id=client_id,
            redirect_uri=redirect_uri,
            scopes=scopes,
            email=user.email,
            name=user.name,
        )
        self.sessions.save(state, session)
        code = self.codes.issue(state)

        logger.info("Authorization code issued for client %s", client_id)
        return _append_query(redirect_uri, {"code": code, "state": state}), None

    def _resolve_scopes(
        self, client: OAuthClient, scope: str | None
    ) -> tuple[list[str], OAuthError | None]:
        requested = set(scope.split()) if scope else set(client.default_scopes)
        if not requested.issubset(client.allowed_scopes):
            unknown = " ".join(sorted(requested - set(client.allowed_scopes)))
            return [], OAuthError(errors.INVALID_SCOPE, f"Scope not allowed: {unknown}")
        return sorted(requested), None

    # -- token endpoint: authorization_code -------------------------------

    def exchange(
        self,
        code: str | None,
        code_verifier: str | None,
        state: str | None,
        client_id: str | None = None,
        redirect_uri: str | None = None,
    ) -> tuple[dict | None, OAuthError | None]:
        """Exchange an authorization code + verifier for tokens.

        The code and its PKCE session are consumed by the first attempt,
        whatever its outcome. Returns (token_dict, error).
        """
        if not code or not code_verifier or not state:
            return None, errors.invalid_request("code, code_verifier and state are required")
        if not is_valid_pkce_value(code_verifier):
            return None, errors.invalid_request(
                "code_verifier must be 43-128 unreserved characters"
            )

        stored_state = self.codes.consume(code)
        if stored_state is None:
            return None, errors.invalid_grant("Invalid or expired authorization code")

        session = self.sessions.pop(stored_state)

        if stored_state != state:
            logger.warning("state mismatch on code redemption")
            return None, errors.invalid_grant("state does not match the authorization code")

        if session is None:
            return None, errors.invalid_grant("Authorization session expired or not found")

        if client_id and client_id != session.client_id:
            return None, errors.invalid_grant("client_id does not match the authorization code")
        if redirect_uri and redirect_uri != session.redirect_uri:
            return None, errors.invalid_grant("redirect_uri does not match the authorization code")

        # PKCE verification: S256 = BASE64URL(SHA256(code_verifier))
        if not verify_pkce(code_verifier, session.code_challenge):
            self.audit.log_security_event(
                "pkce_failed",
                actor=session.user_id,
                target=f"client:{session.client_id}",
                severity=AuditSeverity.WARNING,
                status="denied",
            )
            return None, errors.invalid_grant("PKCE verification failed")

        pair = self._issue_pair(
            session.user_id,
            session.scopes,
            {"email": session.email, "name": session.name},
        )
        self.audit.log_security_event(
            "token_issued",
            actor=session.user_id,
            target=f"client:{session.client_id}",
            scope=pair.scope,
        )
        return pair.to_dict(), None

    # -- token endpoint: refresh_token -----------------------------------

    def refresh(self, refresh_token: str | None) -> tuple[dict | None, OAuthError | None]:
        """Rotate a refresh token.

        A second redemption of the same token is treated as theft: every
        token issued to the subject is revoked. Returns (token_dict, error).
        """
        if not refresh_token:
            return None, errors.invalid_request("refresh_token is required")

        verification = self.codec.verify_refresh_token(refresh_token)
        if not verification.valid:
            if verification.reason == "used":
                self._handle_reuse(verification)
                return None, errors.invalid_grant("Refresh token has already been used")
            return None, errors.invalid_grant("Invalid or expired refresh token")

        subject = verification.subject
        old_jti = verification.jti
        ttl = self.codec.remaining_lifetime(verification.payload)

        if not self.ledger.mark_refresh_token_used(old_jti, ttl):
            # Lost the race against a concurrent redemption of the same token
            self._handle_reuse(verification)
            return None, errors.invalid_grant("Refresh token has already been used")

        owner = self.users.get(subject)
        display = {"email": owner.email, "name": owner.name} if owner else {}
        pair = self._issue_pair(subject, verification.scopes, display, parent_id=old_jti)
        if self.ledger.refresh_token_status(old_jti) == REVOKED:
            # Reuse was detected while this rotation was in flight. The new
            # tokens are already indexed, so the sweep reaches them.
            self.ledger.revoke_all_sessions_for_subject(subject)
            logger.warning("Discarded rotation of %s after concurrent reuse", old_jti)
            return None, errors.invalid_grant("Refresh token has been revoked")

        self.audit.log_security_event(
            "token_refreshed",
            actor=subject,
            target=f"jti:{old_jti}",
        )
        return pair.to_dict(), None

    def _handle_reuse(self, verification: TokenVerification) -> None:
        subject = verification.subject
        # Revoked before the sweep so an in-flight rotation of the same token
        # sees it when it re-checks
        self.ledger.revoke_refresh_token(
            verification.jti, self.codec.remaining_lifetime(verification.payload)
        )
        revoked = self.ledger.revoke_all_sessions_for_subject(subject)
        self.audit.log_security_event(
            "refresh_token_reuse",
            actor=subject,
            target=f"jti:{verification.jti}",
            severity=AuditSeverity.ALERT,
            status="revoked",
            tokens_revoked=revoked,
        )

    def _issue_pair(
        self,
        subject: str,
        scopes: Iterable[str],
        display_fields: dict,
        parent_id: str | None = None,
    ) -> TokenPair:
        scopes = sorted(set(scopes))
        access = self.codec.issue_access_token(subject, scopes, display_fields)
        refresh = self.codec.issue_refresh_token(subject, parent_id=parent_id, scopes=scopes)
        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            scope=" ".join(scopes),
            expires_in=self.codec.access_ttl,
        )

    # -- revocation endpoint ---------------------------------------------

    def revoke(self, token: str | None, token_type_hint: str | None = None) -> bool:
        """Revoke an access or refresh token (RFC 7009).

        Always returns True: unknown or already-invalid tokens are not an
        error.
        """
        if not token:
            return True
        if token_type_hint == "refresh_token":
            order = (self._revoke_refresh, self._revoke_access)
        else:
            order = (self._revoke_access, self._revoke_refresh)
        for attempt in order:
            if attempt(token):
                break
        return True

    def _revoke_access(self, token: str) -> bool:
        verification = self.codec.verify_access_token(token)
        if verification.payload is None:
            # Unverified jtis are never written to the ledger
            return False
        if verification.valid:
            remaining = self.codec.remaining_lifetime(verification.payload)
            self.ledger.mark_access_token_revoked(verification.jti, remaining)
            self.audit.log_security_event(
                "token_revoked",
                actor=verification.subject,
                target=f"jti:{verification.jti}",
                status="revoked",
            )
        return True

    def _revoke_refresh(self, token: str) -> bool:
        payload = self.codec.peek_refresh_token(token)
        if payload is None:
            return False
        self.ledger.revoke_refresh_token(payload["jti"], self.codec.remaining_lifetime(payload))
        revoked = self.ledger.revoke_all_sessions_for_subject(payload["sub"])
        self.audit.log_security_event(
            "sessions_revoked",
            actor=payload["sub"],
            target=f"jti:{payload['jti']}",
            severity=AuditSeverity.CRITICAL,
            status="revoked",
            tokens_revoked=revoked,
        )
        return True

    # -- protected resources ---------------------------------------------

    def verify_access_token(self, access_token: str) -> TokenVerification:
        """Verify an access token (signature, expiry, ledger)."""
        return self.codec.verify_access_token(access_token)

    def metadata(self) -> dict:
        """Authorization server metadata (RFC 8414)."""
        issuer = self.codec.issuer.rstrip("/")
        scopes = sorted({s for c in self.clients.all() for s in c.allowed_scopes})
        return {
            "issuer": issuer,
            "authorization_endpoint": f"{issuer}/oauth/authorize",
            "token_endpoint": f"{issuer}/oauth/token",
            "revocation_endpoint": f"{issuer}/oauth/revoke",
            "scopes_supported": scopes,
            "response_types_supported": ["code"],
            "grant_types_supported": ["authorization_code", "refresh_token"],
            "code_challenge_methods_supported": [S256],
            "token_endpoint_auth_methods_supported": ["none"],
            "revocation_endpoint_auth_methods_supported": ["none"],
        }


def _append_query(url: str, params: dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


def build_server(settings, store: KeyValueStore | None = None) -> AuthorizationServer:
    """Wire an AuthorizationServer from settings."""
    store = store or create_store(settings.store_url)
    ledger = RevocationLedger(store, index_ttl=settings.refresh_token_ttl)
    codec = TokenCodec(
        access_secret=settings.access_token_secret.get_secret_value(),
        refresh_secret=settings.refresh_token_secret.get_secret_value(),
        ledger=ledger,
        issuer=settings.issuer,
        algorithm=settings.jwt_algorithm,
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
    )
    clients = ClientRegistry(
        OAuthClient(
            client_id=c.client_id,
            client_name=c.client_name or c.client_id,
            redirect_uris=list(c.redirect_uris),
            allowed_scopes=list(c.allowed_scopes),
            default_scopes=list(c.default_scopes),
        )
        for c in settings.clients
    )
    return AuthorizationServer(
        codec=codec,
        sessions=PKCESessionStore(store, ttl=settings.pkce_session_ttl),
        codes=AuthorizationCodeStore(store, ttl=settings.authorization_code_ttl),
        clients=clients,
        users=UserDirectory(store),
        audit=get_audit_logger(),
    )


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    global _server
    if _server is None:
        from tokenwarden.config import get_settings

        _server = build_server(get_settings())
    return _server


def reset_oauth_server() -> None:
    global _server
    _server = None
