# OAuth2 error types.
# Created: 2026-10-02
#
# OAuthError covers everything a client can cause (bad parameters, bad
# grants). StoreError is infrastructure: it is never reported as "not found".

from __future__ import annotations

from dataclasses import dataclass

INVALID_REQUEST = "invalid_request"
INVALID_CLIENT = "invalid_client"
INVALID_GRANT = "invalid_grant"
INVALID_SCOPE = "invalid_scope"
UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
LOGIN_REQUIRED = "login_required"
SERVER_ERROR = "server_error"


@dataclass(frozen=True)
class OAuthError:
    """An OAuth error response (RFC 6749 section 5.2)."""

    error: str
    description: str
    status_code: int = 400

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "error_description": self.description}


def invalid_request(description: str) -> OAuthError:
    return OAuthError(INVALID_REQUEST, description)


def invalid_grant(description: str) -> OAuthError:
    return OAuthError(INVALID_GRANT, description)


def invalid_client(description: str = "Unknown client_id") -> OAuthError:
    return OAuthError(INVALID_CLIENT, description)


class StoreError(RuntimeError):
    """The backing key-value store failed (connectivity, protocol, timeout)."""
