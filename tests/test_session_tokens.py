# Tests for HMAC-signed login session tokens.
# Created: 2026-10-05

import time

import pytest

from tokenwarden.security.session_tokens import create_session_token, verify_session_token

SECRET = "session-secret-0123456789abcdef0123456789"


def test_round_trip():
    token = create_session_token(SECRET, "user-1", ttl_seconds=60)
    assert verify_session_token(token, SECRET) == "user-1"


def test_wrong_secret():
    token = create_session_token(SECRET, "user-1", ttl_seconds=60)
    assert verify_session_token(token, SECRET[::-1]) is None


def test_expired(monkeypatch):
    token = create_session_token(SECRET, "user-1", ttl_seconds=60)
    real = time.time()
    monkeypatch.setattr(time, "time", lambda: real + 61)
    assert verify_session_token(token, SECRET) is None


def test_tampered_user_id():
    token = create_session_token(SECRET, "user-1", ttl_seconds=60)
    _, expires, sig = token.split(":")
    assert verify_session_token(f"user-2:{expires}:{sig}", SECRET) is None


def test_extended_expiry():
    token = create_session_token(SECRET, "user-1", ttl_seconds=60)
    user_id, expires, sig = token.split(":")
    assert verify_session_token(f"{user_id}:{int(expires) + 3600}:{sig}", SECRET) is None


@pytest.mark.parametrize("garbage", ["", "a:b", "a:notanumber:sig", "a:b:c:d"])
def test_malformed(garbage):
    assert verify_session_token(garbage, SECRET) is None


def test_colon_in_user_id_is_rejected():
    with pytest.raises(ValueError):
        create_session_token(SECRET, "a:b")
