"""
BaseConnector — abstract interface for the OAuth2 connectors.

Slack, Notion and Google Drive each subclass this and implement the
authorization URL and the code → token exchange.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import httpx

from config.settings import OAuthClientConfig, Settings, config
from utils.exceptions import OAuthExchangeFailed

ClientFactory = Callable[[], httpx.AsyncClient]


class BaseConnector(ABC):
    """Abstract base for all OAuth2 connectors."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._settings = settings or config
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(timeout=30.0))

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug: 'slack', 'notion', 'google_drive'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable: 'Slack', 'Notion', 'Google Drive'."""
        ...

    @property
    @abstractmethod
    def scopes(self) -> List[str]:
        """OAuth scopes required by this connector."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    @property
    def oauth_config(self) -> OAuthClientConfig:
        """Client id/secret/redirect URI; raises ``ConfigurationError`` if incomplete."""
        return self._settings.oauth_client(self.provider_name)

    def is_configured(self) -> bool:
        return self._settings.is_provider_configured(self.provider_name)

    @abstractmethod
    def get_auth_url(self, state: str) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        state : str
            Opaque signed state string carrying the user id.
        """
        ...

    @abstractmethod
    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """
        Exchange the authorization code for tokens.

        Returns
        -------
        dict with keys:
            access_token, refresh_token, expires_in, scopes,
            account_id, account_label, provider_meta

        Raises
        ------
        OAuthExchangeFailed
            The provider rejected the code or returned no token.
        """
        ...

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Refresh an expired access token.

        Returns
        -------
        dict with keys: access_token, expires_in, (optional) refresh_token
        """
        raise NotImplementedError(f"{self.display_name} tokens do not expire")

    # ── Helpers ─────────────────────────────────────────────────────────

    async def _post(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        """POST to a token endpoint; transport errors become ``OAuthExchangeFailed``."""
        try:
            async with self._client_factory() as client:
                resp = await client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            raise OAuthExchangeFailed(self.provider_name, f"transport error: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.is_error:
            reason = data.get("error_description") or data.get("error") or f"HTTP {resp.status_code}"
            raise OAuthExchangeFailed(self.provider_name, str(reason))
        if not isinstance(data, dict):
            raise OAuthExchangeFailed(self.provider_name, "unexpected token response")
        return data
