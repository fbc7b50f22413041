# tokenwarden HTTP layer
# Created: 2026-10-02
#
# OAuth endpoints are mounted at /oauth/*, discovery at /.well-known/*, and
# the versioned REST API (auth, health, protected resources) at /api/v1/.
