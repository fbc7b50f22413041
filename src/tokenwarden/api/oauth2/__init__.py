# OAuth2 authorization server: PKCE, token codec, revocation ledger.
# Created: 2026-10-02
