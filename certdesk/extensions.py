"""Per-application registry for external service clients."""

from __future__ import annotations

import logging
from typing import Any, Callable

from flask import current_app

logger = logging.getLogger("certdesk")

EXTENSION_KEY = "certdesk.clients"


class ClientRegistry:
    """Builds each client on first use and reuses it for the app's lifetime.

    ``close`` tears every built client down; it runs at interpreter exit and
    can be called explicitly (e.g. by tests or the CLI).
    """

    def __init__(self, config):
        self._config = config
        self._clients: dict[str, Any] = {}

    def get(self, name: str, factory: Callable[[Any], Any]) -> Any:
        client = self._clients.get(name)
        if client is None:
            client = factory(self._config)
            self._clients[name] = client
            logger.info("[CLIENT-INIT] %s=%s", name, type(client).__name__)
        return client

    def override(self, name: str, client: Any) -> None:
        self._clients[name] = client

    def close(self) -> None:
        for name, client in list(self._clients.items()):
            closer = getattr(client, "close", None)
            if callable(closer):
                try:
                    closer()
                except Exception:
                    logger.exception("[CLIENT-CLOSE] %s failed", name)
        self._clients.clear()


def clients() -> ClientRegistry:
    return current_app.extensions[EXTENSION_KEY]
