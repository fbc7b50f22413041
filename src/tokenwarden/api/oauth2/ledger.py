# Revocation and reuse ledger.
# Created: 2026-10-02
#
# The single source of truth for "is this token identifier still usable".
# Marks expire together with the token they describe: once a token would
# have expired anyway its mark is no longer needed.

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from tokenwarden.api.oauth2.store import KeyValueStore

logger = logging.getLogger(__name__)

USED = "used"
REVOKED = "revoked"

ACCESS = "access"
REFRESH = "refresh"

_ACCESS_PREFIX = "ledger:access:"
_REFRESH_PREFIX = "ledger:refresh:"
_SUBJECT_PREFIX = "ledger:subject:"

DEFAULT_INDEX_TTL = 30 * 24 * 3600


class RevocationLedger:
    """Tracks revoked access tokens, redeemed refresh tokens and per-subject issuance."""

    def __init__(
        self,
        store: KeyValueStore,
        index_ttl: int = DEFAULT_INDEX_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.index_ttl = index_ttl
        self._clock = clock

    # -- access tokens -------------------------------------------------

    def mark_access_token_revoked(self, jti: str, remaining_lifetime: int) -> None:
        if remaining_lifetime <= 0:
            return
        self.store.set(_ACCESS_PREFIX + jti, REVOKED, ttl=remaining_lifetime)

    def is_access_token_revoked(self, jti: str) -> bool:
        return self.store.get(_ACCESS_PREFIX + jti) is not None

    # -- refresh tokens ------------------------------------------------

    def mark_refresh_token_used(self, jti: str, ttl: int) -> bool:
        """Claim a refresh token for redemption.

        Returns False if the jti was already used or revoked. The write is a
        set-if-absent so two racing redemptions cannot both win.
        """
        return self.store.set_if_absent(_REFRESH_PREFIX + jti, USED, ttl=max(ttl, 1))

    def revoke_refresh_token(self, jti: str, remaining_lifetime: int) -> None:
        """Mark a refresh jti revoked, replacing any used mark."""
        if remaining_lifetime <= 0:
            return
        self.store.set(_REFRESH_PREFIX + jti, REVOKED, ttl=remaining_lifetime)

    def is_refresh_token_used(self, jti: str) -> bool:
        return self.refresh_token_status(jti) is not None

    def refresh_token_status(self, jti: str) -> str | None:
        """``None`` if redeemable, else ``"used"`` or ``"revoked"``."""
        return self.store.get(_REFRESH_PREFIX + jti)

    # -- per-subject index ----------------------------------------------

    def track_token(self, subject: str, kind: str, jti: str, expires_at: int) -> None:
        """Record an issued token so it can be found by subject later."""
        member = f"{kind}:{jti}:{expires_at}"
        # index_ttl is at least the refresh token lifetime, so the index
        # outlives every token it references.
        self.store.add_member(_SUBJECT_PREFIX + subject, member, ttl=self.index_ttl)

    def revoke_all_sessions_for_subject(self, subject: str) -> int:
        """Invalidate every unexpired token issued to *subject*.

        All marks are written in one atomic batch, then the entries that were
        read are removed from the index. Tokens tracked while this runs stay
        indexed for the next call. Returns the number of tokens revoked.
        """
        key = _SUBJECT_PREFIX + subject
        now = int(self._clock())
        seen = self.store.members(key)
        writes: list[tuple[str, str, int | None]] = []
        for member in seen:
            try:
                kind, jti, expires_at = member.split(":", 2)
                remaining = int(expires_at) - now
            except ValueError:
                logger.warning("Skipping malformed ledger index entry for %s", subject)
                continue
            if remaining <= 0:
                continue
            prefix = _REFRESH_PREFIX if kind == REFRESH else _ACCESS_PREFIX
            writes.append((prefix + jti, REVOKED, remaining))

        self.store.set_many(writes)
        self.store.remove_members(key, *seen)
        logger.info("Revoked %d tokens for subject %s", len(writes), subject)
        return len(writes)
