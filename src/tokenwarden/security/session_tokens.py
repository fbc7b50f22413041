"""HMAC-signed login session tokens with TTL.

Token format: ``{user_id}:{expires_unix}:{hex_hmac}``

These identify the resource owner at the authorize step. They are not OAuth
tokens and are never accepted by the protected API.
"""

import hashlib
import hmac
import time

__all__ = ["create_session_token", "verify_session_token"]


def create_session_token(secret: str, user_id: str, ttl_seconds: int = 8 * 3600) -> str:
    """Issue a session token for *user_id* that expires after *ttl_seconds*."""
    if ":" in user_id:
        raise ValueError("user_id must not contain ':'")
    expires = int(time.time()) + ttl_seconds
    sig = _sign(secret, f"{user_id}:{expires}")
    return f"{user_id}:{expires}:{sig}"


def verify_session_token(token: str, secret: str) -> str | None:
    """Return the user id if the token is valid and unexpired, else None."""
    parts = token.split(":")
    if len(parts) != 3:
        return None

    user_id, expires_str, sig = parts
    try:
        expires = int(expires_str)
    except ValueError:
        return None

    if time.time() > expires:
        return None

    expected = _sign(secret, f"{user_id}:{expires_str}")
    if not hmac.compare_digest(sig, expected):
        return None
    return user_id


def _sign(key: str, message: str) -> str:
    return hmac.new(key.encode(), message.encode(), hashlib.sha256).hexdigest()
