# Shared fixtures: settings, an in-memory store and a wired authorization server.
# Created: 2026-10-04

import pytest

import tokenwarden.api.oauth2.server as server_mod
import tokenwarden.config as config_mod
import tokenwarden.security.audit as audit_mod
from tokenwarden.api.oauth2.store import MemoryStore
from tokenwarden.config import ClientConfig, Settings
from tokenwarden.users import UserDirectory

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"
SESSION_SECRET = "session-secret-for-tests-0123456789abcdef"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(monkeypatch):
    s = Settings(
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        session_secret=SESSION_SECRET,
        issuer="https://auth.example.test",
        rate_limit_enabled=False,
        clients=[
            ClientConfig(
                client_id="c1",
                client_name="Example App",
                redirect_uris=["https://app/cb", "https://app/cb?source=mobile"],
                allowed_scopes=["openid", "profile", "email"],
                default_scopes=["profile"],
            )
        ],
    )
    monkeypatch.setattr(config_mod, "_settings", s)
    monkeypatch.setattr(audit_mod, "_audit_logger", None)
    return s


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def server(settings, store, monkeypatch):
    srv = server_mod.build_server(settings, store)
    # Cheap bcrypt rounds keep the suite fast
    srv.users = UserDirectory(store, rounds=4)
    monkeypatch.setattr(server_mod, "_server", srv)
    return srv


@pytest.fixture
def user(server):
    return server.users.register("alice", "correct-horse-battery", "alice@example.test", "Alice")
