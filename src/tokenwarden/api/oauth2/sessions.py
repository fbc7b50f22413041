# PKCE session and authorization code storage.
# Created: 2026-10-02
#
# Both are short-lived and single use. They live in the shared key-value
# store (not in process memory) so any server instance can finish a flow
# another instance started.

from __future__ import annotations

import logging
import secrets

from pydantic import ValidationError

from tokenwarden.api.oauth2.models import PKCESession
from tokenwarden.api.oauth2.store import KeyValueStore

logger = logging.getLogger(__name__)

PKCE_SESSION_TTL = 300
CODE_TTL = 300

_SESSION_PREFIX = "pkce:session:"
_CODE_PREFIX = "pkce:code:"


class PKCESessionStore:
    """PKCE sessions keyed by the client-supplied ``state``."""

    def __init__(self, store: KeyValueStore, ttl: int = PKCE_SESSION_TTL):
        self.store = store
        self.ttl = ttl

    def save(self, state: str, session: PKCESession) -> None:
        """Write the session with the session TTL. Last write wins."""
        self.store.set(_SESSION_PREFIX + state, session.model_dump_json(), ttl=self.ttl)

    def get(self, state: str) -> PKCESession | None:
        return self._decode(state, self.store.get(_SESSION_PREFIX + state))

    def pop(self, state: str) -> PKCESession | None:
        """Read and delete in one step so a session can only be redeemed once."""
        return self._decode(state, self.store.pop(_SESSION_PREFIX + state))

    def delete(self, state: str) -> None:
        self.store.delete(_SESSION_PREFIX + state)

    def _decode(self, state: str, raw: str | None) -> PKCESession | None:
        if raw is None:
            return None
        try:
            return PKCESession.model_validate_json(raw)
        except ValidationError as exc:
            # Logged as an integrity problem, reported to callers as not found
            logger.warning(
                "Discarding corrupt PKCE session for state %s...: %s",
                state[:8],
                exc.errors()[0]["msg"] if exc.errors() else exc,
            )
            self.store.delete(_SESSION_PREFIX + state)
            return None


class AuthorizationCodeStore:
    """One-time authorization codes mapped to the ``state`` they were issued for."""

    def __init__(self, store: KeyValueStore, ttl: int = CODE_TTL):
        self.store = store
        self.ttl = ttl

    def issue(self, state: str) -> str:
        code = secrets.token_urlsafe(32)
        self.store.set(_CODE_PREFIX + code, state, ttl=self.ttl)
        return code

    def consume(self, code: str) -> str | None:
        """Return the state for *code* and delete it. Replays get None."""
        return self.store.pop(_CODE_PREFIX + code)
