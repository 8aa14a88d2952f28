"""
NotionConnector — OAuth flow for a Notion public integration.

The token endpoint authenticates the client with HTTP Basic
(``client_id:client_secret``) and takes a JSON body.  Notion access tokens
do not expire, so there is no refresh.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List
from urllib.parse import urlencode

from connectors.base import BaseConnector
from utils.exceptions import OAuthExchangeFailed

logger = logging.getLogger(__name__)

_NOTION_AUTH_URL = "https://api.notion.com/v1/oauth/authorize"
_NOTION_TOKEN_URL = "https://api.notion.com/v1/oauth/token"


def basic_auth_header(client_id: str, client_secret: str) -> str:
    raw = f"{client_id}:{client_secret}".encode()
    return "Basic " + base64.b64encode(raw).decode()


class NotionConnector(BaseConnector):
    """OAuth2 connector for Notion."""

    @property
    def provider_name(self) -> str:
        return "notion"

    @property
    def display_name(self) -> str:
        return "Notion"

    @property
    def scopes(self) -> List[str]:
        # Access is granted per page in Notion's consent screen
        return []

    def get_auth_url(self, state: str) -> str:
        oauth = self.oauth_config
        params = {
            "client_id": oauth.client_id,
            "response_type": "code",
            "owner": "user",
            "redirect_uri": oauth.redirect_uri,
            "state": state,
        }
        return f"{_NOTION_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """Exchange auth code for the integration's access token."""
        oauth = self.oauth_config
        data = await self._post(
            _NOTION_TOKEN_URL,
            json={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": oauth.redirect_uri,
            },
            headers={
                "Authorization": basic_auth_header(oauth.client_id, oauth.client_secret),
                "Content-Type": "application/json",
            },
        )

        if not data.get("access_token") or not data.get("bot_id"):
            raise OAuthExchangeFailed(
                self.provider_name, data.get("error", "no access_token / bot_id in response")
            )

        return {
            "access_token": data["access_token"],
            "refresh_token": None,
            "expires_in": None,
            "scopes": [],
            "account_id": data["bot_id"],
            "account_label": data.get("workspace_name") or "",
            "provider_meta": {
                "workspace_id": data.get("workspace_id"),
                "workspace_name": data.get("workspace_name"),
                "workspace_icon": data.get("workspace_icon"),
            },
        }
