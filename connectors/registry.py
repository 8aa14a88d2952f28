"""
ConnectorRegistry — the three fixed OAuth connectors, looked up by slug.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from connectors.base import BaseConnector
from connectors.google_drive import GoogleDriveConnector
from connectors.notion import NotionConnector
from connectors.slack import SlackConnector

logger = logging.getLogger(__name__)


def _default_connectors() -> List[BaseConnector]:
    return [SlackConnector(), NotionConnector(), GoogleDriveConnector()]


class ConnectorRegistry:
    """
    Singleton registry for the OAuth connectors.

    Every connector is registered whether or not it is configured, so a
    callback for an unconfigured provider fails with ``ConfigurationError``
    instead of looking like an unknown provider.
    """

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {
                c.provider_name: c for c in _default_connectors()
            }
            cls._instance._discovered = False
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def discover(self) -> None:
        """Log which connectors have complete client configuration."""
        if self._discovered:
            return
        for conn in self._connectors.values():
            if conn.is_configured():
                logger.info(
                    "Connector configured: %s (%s)",
                    conn.display_name,
                    conn.provider_name,
                )
            else:
                logger.warning(
                    "Connector %s not configured (missing client_id, secret or redirect_uri)",
                    conn.provider_name,
                )
        self._discovered = True

    def register(self, connector: BaseConnector) -> None:
        """Replace the connector for its provider (tests inject stubs here)."""
        self._connectors[connector.provider_name] = connector

    def get(self, provider: str) -> Optional[BaseConnector]:
        """Get a connector by provider name."""
        return self._connectors.get(provider)

    def list_providers(self) -> List[Dict[str, object]]:
        """Return info about all connectors."""
        return [
            {
                "provider": c.provider_name,
                "display_name": c.display_name,
                "configured": c.is_configured(),
            }
            for c in self._connectors.values()
        ]
