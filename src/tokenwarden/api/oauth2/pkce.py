# PKCE (RFC 7636) helpers.
# Created: 2026-10-02

from __future__ import annotations

import base64
import hashlib
import hmac
import re

# Both the verifier and the challenge are 43-128 characters from the
# unreserved set. A base64url SHA-256 digest is exactly 43 characters.
MIN_LENGTH = 43
MAX_LENGTH = 128
_UNRESERVED = re.compile(r"^[A-Za-z0-9\-._~]+$")

S256 = "S256"


def compute_s256_challenge(code_verifier: str) -> str:
    """BASE64URL(SHA256(code_verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_pkce(code_verifier: str, code_challenge: str) -> bool:
    """Check a verifier against a stored S256 challenge in constant time."""
    try:
        expected = compute_s256_challenge(code_verifier)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected.encode(), code_challenge.encode())


def is_valid_pkce_value(value: str | None) -> bool:
    """True if *value* is a well-formed verifier or challenge."""
    if not value:
        return False
    return MIN_LENGTH <= len(value) <= MAX_LENGTH and bool(_UNRESERVED.match(value))
