# Registered public clients.
# Created: 2026-10-02
#
# Redirect URIs are matched exactly: no prefix, wildcard or port matching.

from __future__ import annotations

import logging
from collections.abc import Iterable

from tokenwarden.api.oauth2.models import OAuthClient

logger = logging.getLogger(__name__)

# Default mobile client, always registered
DEFAULT_MOBILE_CLIENT = OAuthClient(
    client_id="tokenwarden-mobile",
    client_name="tokenwarden Mobile",
    redirect_uris=["tokenwarden://oauth-callback", "http://localhost:19006/oauth-callback"],
    allowed_scopes=["openid", "profile", "email", "offline_access"],
    default_scopes=["openid", "profile"],
)


class ClientRegistry:
    """Looks up public clients and their registered redirect URIs."""

    def __init__(self, clients: Iterable[OAuthClient] = ()):
        self._clients: dict[str, OAuthClient] = {
            DEFAULT_MOBILE_CLIENT.client_id: DEFAULT_MOBILE_CLIENT,
        }
        for client in clients:
            self.register(client)

    def register(self, client: OAuthClient) -> None:
        if not client.redirect_uris:
            raise ValueError(f"Client {client.client_id} has no redirect_uris")
        self._clients[client.client_id] = client
        logger.debug("Registered client %s", client.client_id)

    def get(self, client_id: str) -> OAuthClient | None:
        return self._clients.get(client_id)

    def all(self) -> list[OAuthClient]:
        return list(self._clients.values())

    @staticmethod
    def is_redirect_allowed(client: OAuthClient, redirect_uri: str) -> bool:
        return redirect_uri in client.redirect_uris
