"""
Connector API routes — OAuth connect/callback, list connections, disconnect.

Route prefix: /api/v1/connectors
"""

from __future__ import annotations

import html
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from connectors.credential_store import disconnect, list_connections
from connectors.oauth import complete_oauth, create_state, verify_state
from connectors.registry import ConnectorRegistry
from utils.exceptions import OAuthExchangeFailed
from utils.schemas import ConnectionInfo

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connectors"])


def _get_connector(provider: str):
    connector = ConnectorRegistry().get(provider)
    if connector is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{provider}' not found",
        )
    return connector


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/providers")
async def list_providers() -> List[Dict[str, Any]]:
    """
    List the providers and whether each has client configuration.
    No auth required; the account page calls it before login.
    """
    return ConnectorRegistry().list_providers()


@router.get("/connections", response_model=List[ConnectionInfo])
async def get_connections(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> List[ConnectionInfo]:
    """List the authenticated user's connections (no tokens)."""
    return await list_connections(user_id, db_session=session)


@router.get("/{provider}/auth-url")
async def get_auth_url(
    provider: str,
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, str]:
    """OAuth consent URL for a provider. Raises ``ConfigurationError`` if unconfigured."""
    connector = _get_connector(provider)
    auth_url = connector.get_auth_url(create_state(user_id))
    return {"auth_url": auth_url, "provider": provider}


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: str = Query(""),
    state: str = Query(""),
    session: AsyncSession = Depends(db_session),
) -> HTMLResponse:
    """
    OAuth redirect target.

    The ``state`` parameter identifies the user (the provider's redirect
    carries no bearer token).  Exchanges the code, stores the credential
    and returns a small page that notifies the opener window.
    """
    _get_connector(provider)
    user_id = verify_state(state)

    try:
        await complete_oauth(provider, code, user_id, db_session=session)
    except OAuthExchangeFailed as exc:
        logger.error("OAuth callback failed for %s: %s", provider, exc)
        return HTMLResponse(
            content=_callback_html(success=False, message=f"Connection failed: {exc.reason}", provider=provider),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    return HTMLResponse(
        content=_callback_html(success=True, message=f"Connected {provider}", provider=provider),
        status_code=status.HTTP_200_OK,
    )


@router.delete("/{provider}")
async def delete_connection(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Forget the stored credential for a provider."""
    _get_connector(provider)
    if not await disconnect(user_id, provider, db_session=session):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Connection not found")
    return {"status": "disconnected", "provider": provider}


# ── Callback page ──────────────────────────────────────────────────────


def _callback_html(success: bool, message: str, provider: str) -> str:
    """Popup page: posts the outcome to the opener and closes itself."""
    status_text = "Connected!" if success else "Failed"
    message = html.escape(message)
    provider = html.escape(provider)
    return f"""<!DOCTYPE html>
<html>
<head><title>{provider} {status_text}</title></head>
<body>
    <h2>{status_text}</h2>
    <p>{message}</p>
    <script>
        if (window.opener) {{
            window.opener.postMessage({{
                type: 'oauth-callback',
                provider: '{provider}',
                success: {'true' if success else 'false'},
            }}, '*');
        }}
        setTimeout(() => window.close(), 2000);
    </script>
</body>
</html>"""
