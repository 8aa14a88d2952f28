"""
SlackConnector — OAuth v2 flow for a Slack *user* token.

The user token (``authed_user.access_token``) is what ``search.messages``
requires; the bot token Slack may also return is ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List
from urllib.parse import urlencode

from connectors.base import BaseConnector
from utils.exceptions import OAuthExchangeFailed

logger = logging.getLogger(__name__)

_SLACK_AUTH_URL = "https://slack.com/oauth/v2/authorize"
_SLACK_TOKEN_URL = "https://slack.com/api/oauth.v2.access"


class SlackConnector(BaseConnector):
    """OAuth2 connector for Slack."""

    @property
    def provider_name(self) -> str:
        return "slack"

    @property
    def display_name(self) -> str:
        return "Slack"

    @property
    def scopes(self) -> List[str]:
        return ["search:read"]

    def get_auth_url(self, state: str) -> str:
        oauth = self.oauth_config
        params = {
            "client_id": oauth.client_id,
            "user_scope": ",".join(self.scopes),
            "redirect_uri": oauth.redirect_uri,
            "state": state,
        }
        return f"{_SLACK_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """Exchange auth code for the user token."""
        oauth = self.oauth_config
        data = await self._post(
            _SLACK_TOKEN_URL,
            data={
                "client_id": oauth.client_id,
                "client_secret": oauth.client_secret,
                "code": code,
                "redirect_uri": oauth.redirect_uri,
            },
        )

        # Slack answers HTTP 200 with ok=false on rejection
        if not data.get("ok"):
            raise OAuthExchangeFailed(self.provider_name, data.get("error", "unknown_error"))

        authed_user = data.get("authed_user") or {}
        access_token = authed_user.get("access_token")
        if not access_token:
            raise OAuthExchangeFailed(self.provider_name, "no user access token in response")

        team = data.get("team") or {}
        return {
            "access_token": access_token,
            "refresh_token": authed_user.get("refresh_token"),
            "expires_in": authed_user.get("expires_in"),
            "scopes": [s for s in (authed_user.get("scope") or "").split(",") if s],
            "account_id": authed_user.get("id", ""),
            "account_label": team.get("name", ""),
            "provider_meta": {"team_id": team.get("id"), "team_name": team.get("name")},
        }

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Rotate an expiring user token (workspaces with token rotation on)."""
        oauth = self.oauth_config
        data = await self._post(
            _SLACK_TOKEN_URL,
            data={
                "client_id": oauth.client_id,
                "client_secret": oauth.client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
        )
        if not data.get("ok"):
            raise OAuthExchangeFailed(self.provider_name, data.get("error", "unknown_error"))

        # User-token rotations answer at the top level; older apps nest under authed_user
        token = data if data.get("access_token") else data.get("authed_user") or {}
        if not token.get("access_token"):
            raise OAuthExchangeFailed(self.provider_name, "refresh returned no access_token")

        return {
            "access_token": token["access_token"],
            "expires_in": token.get("expires_in"),
            "refresh_token": token.get("refresh_token"),
        }
