"""User directory.

Resource owners live in the shared key-value store (``user:<username>``) with
bcrypt password hashes. Only the hash is stored; it never leaves this module.
"""

from __future__ import annotations

import logging
import uuid

import bcrypt
from pydantic import BaseModel, ValidationError

from tokenwarden.api.oauth2.store import KeyValueStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
BCRYPT_ROUNDS = 12

_USER_PREFIX = "user:"

_DUMMY_PASSWORD = b"tokenwarden-dummy-password"


class User(BaseModel):
    """Public view of a resource owner."""

    id: str
    username: str
    email: str | None = None
    name: str | None = None


class UserRecord(User):
    """Stored user record (includes the password hash)."""

    password_hash: str

    def public(self) -> User:
        return User(id=self.id, username=self.username, email=self.email, name=self.name)


class UserExistsError(ValueError):
    """Raised when registering a username that is already taken."""


class UserDirectory:
    """Registers and authenticates users against the key-value store."""

    def __init__(self, store: KeyValueStore, rounds: int = BCRYPT_ROUNDS):
        self.store = store
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def register(
        self,
        username: str,
        password: str,
        email: str | None = None,
        name: str | None = None,
    ) -> User:
        """Create a user. Raises ValueError on bad input, UserExistsError on duplicates."""
        username = username.strip()
        if not username or ":" in username:
            raise ValueError("username must be a non-empty string without ':'")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password must be at least {MIN_PASSWORD_LENGTH} characters")

        password_hash = bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.rounds))
        record = UserRecord(
            id=uuid.uuid4().hex,
            username=username,
            email=email,
            name=name,
            password_hash=password_hash.decode(),
        )
        if not self.store.set_if_absent(_USER_PREFIX + username, record.model_dump_json()):
            raise UserExistsError(f"username {username!r} is already taken")
        # Secondary index so the authorize step can resolve a user by id
        self.store.set(_USER_PREFIX + "id:" + record.id, username)
        logger.info("User registered: %s", username)
        return record.public()

    def authenticate(self, username: str, password: str) -> User | None:
        """Return the user if the credentials match, else None.

        Unknown usernames and wrong passwords are indistinguishable to callers.
        """
        record = self._load(username)
        password_hash = record.password_hash.encode() if record else self.dummy_hash()
        valid = bcrypt.checkpw(password.encode(), password_hash)
        if record is None or not valid:
            return None
        return record.public()

    def dummy_hash(self) -> bytes:
        """Hash checked against when the username is unknown.

        Built with the same cost as real hashes so a missing user takes as
        long to reject as a wrong password.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=self.rounds))
        return self._dummy_hash

    def get(self, user_id: str) -> User | None:
        username = self.store.get(_USER_PREFIX + "id:" + user_id)
        if username is None:
            return None
        record = self._load(username)
        return record.public() if record else None

    def _load(self, username: str) -> UserRecord | None:
        raw = self.store.get(_USER_PREFIX + username)
        if raw is None:
            return None
        try:
            return UserRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Corrupt user record for %s", username)
            return None
