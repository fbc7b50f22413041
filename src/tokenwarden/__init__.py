"""tokenwarden: OAuth 2.0 authorization server with PKCE and refresh-token rotation."""

__version__ = "0.1.0"
