"""
GoogleDriveConnector — OAuth2 web flow for read-only Google Drive access.

The consent URL asks for ``access_type=offline`` and ``prompt=consent`` so
Google issues a refresh token on every authorization, not just the first.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List
from urllib.parse import urlencode

from connectors.base import BaseConnector
from utils.exceptions import OAuthExchangeFailed

logger = logging.getLogger(__name__)

# Google OAuth2 endpoints
_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class GoogleDriveConnector(BaseConnector):
    """OAuth2 connector for Google Drive."""

    @property
    def provider_name(self) -> str:
        return "google_drive"

    @property
    def display_name(self) -> str:
        return "Google Drive"

    @property
    def scopes(self) -> List[str]:
        return [
            "https://www.googleapis.com/auth/drive.readonly",
            "https://www.googleapis.com/auth/userinfo.email",
        ]

    def get_auth_url(self, state: str) -> str:
        oauth = self.oauth_config
        params = {
            "client_id": oauth.client_id,
            "redirect_uri": oauth.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",       # gets refresh_token
            "prompt": "consent",            # force consent to always get refresh_token
            "state": state,
        }
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> Dict[str, Any]:
        """Exchange auth code for tokens, then look up the account email."""
        oauth = self.oauth_config
        token_data = await self._post(
            _GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": oauth.client_id,
                "client_secret": oauth.client_secret,
                "redirect_uri": oauth.redirect_uri,
                "grant_type": "authorization_code",
            },
        )
        access_token = token_data.get("access_token")
        if not access_token:
            raise OAuthExchangeFailed(self.provider_name, "no access_token in response")
        if not token_data.get("refresh_token"):
            logger.warning("Google returned no refresh token; Drive access will lapse on expiry")

        user_info: Dict[str, Any] = {}
        try:
            async with self._client_factory() as client:
                resp = await client.get(
                    _GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                resp.raise_for_status()
                user_info = resp.json()
        except Exception as exc:
            # The token is valid either way; the label is cosmetic
            logger.warning("Google userinfo lookup failed: %s", exc)

        return {
            "access_token": access_token,
            "refresh_token": token_data.get("refresh_token"),
            "expires_in": token_data.get("expires_in", 3600),
            "scopes": token_data.get("scope", "").split(),
            "account_id": user_info.get("id", user_info.get("email", "")),
            "account_label": user_info.get("email", ""),
            "provider_meta": {
                "email": user_info.get("email"),
                "name": user_info.get("name"),
            },
        }

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Use refresh token to get a new access token."""
        oauth = self.oauth_config
        data = await self._post(
            _GOOGLE_TOKEN_URL,
            data={
                "client_id": oauth.client_id,
                "client_secret": oauth.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if not data.get("access_token"):
            raise OAuthExchangeFailed(self.provider_name, "refresh returned no access_token")

        return {
            "access_token": data["access_token"],
            "expires_in": data.get("expires_in", 3600),
            "refresh_token": data.get("refresh_token"),
        }
