"""
OAuth completion — code → credential, plus the signed ``state`` that carries
the user id through the provider's consent redirect.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import Settings, config
from connectors.credential_store import get_user_credentials, set_credential
from connectors.registry import ConnectorRegistry
from utils.exceptions import ConfigurationError, OAuthExchangeFailed, Unauthenticated
from utils.schemas import ProviderCredential

logger = logging.getLogger(__name__)


# ── State token helpers (CSRF protection) ──────────────────────────────


def create_state(user_id: str, settings: Optional[Settings] = None) -> str:
    """Create an opaque state string encoding user_id + expiry."""
    settings = settings or config
    payload = json.dumps(
        {"user_id": user_id, "exp": int(time.time()) + settings.oauth_state_ttl_seconds}
    )
    raw = payload.encode()
    sig = hmac.new(settings.oauth_state_secret.encode(), raw, hashlib.sha256).hexdigest()[:16]
    return urlsafe_b64encode(raw).decode() + "." + sig


def verify_state(state: str, settings: Optional[Settings] = None) -> str:
    """Verify a state token and return its user_id. Raises ``Unauthenticated``."""
    settings = settings or config
    try:
        parts = state.split(".", 1)
        if len(parts) != 2:
            raise ValueError("bad format")
        raw = urlsafe_b64decode(parts[0])
        expected_sig = hmac.new(
            settings.oauth_state_secret.encode(), raw, hashlib.sha256
        ).hexdigest()[:16]
        if not hmac.compare_digest(parts[1], expected_sig):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("state expired")
        return payload["user_id"]
    except Exception as exc:
        raise Unauthenticated(f"Invalid or expired OAuth state: {exc}") from exc


# ── Exchange ───────────────────────────────────────────────────────────


async def complete_oauth(
    provider: str,
    code: str,
    user_id: Optional[str],
    *,
    db_session: Optional[AsyncSession] = None,
) -> Dict[str, ProviderCredential]:
    """
    Exchange ``code`` for a credential and store it for ``user_id``.

    Returns the user's credentials re-read from the store, so the caller's
    view includes the new token.

    Raises
    ------
    Unauthenticated
        No user identity.
    ConfigurationError
        Provider unknown or its client config is incomplete; nothing is sent.
    OAuthExchangeFailed
        Provider rejected the code. The stored credential is not touched.
    """
    if not user_id:
        raise Unauthenticated()

    connector = ConnectorRegistry().get(provider)
    if connector is None:
        raise ConfigurationError(provider, ["provider"])
    # Fail fast before any network call
    _ = connector.oauth_config

    if not code:
        raise OAuthExchangeFailed(provider, "missing authorization code")

    try:
        token_data = await connector.handle_callback(code)
    except (OAuthExchangeFailed, ConfigurationError):
        raise
    except Exception as exc:
        logger.error("OAuth exchange failed for %s: %s", provider, exc)
        raise OAuthExchangeFailed(provider, str(exc)) from exc

    await set_credential(user_id, provider, token_data, db_session=db_session)
    logger.info(
        "OAuth connected: user=%s provider=%s account=%s",
        user_id,
        provider,
        token_data.get("account_label") or token_data.get("account_id"),
    )

    return await get_user_credentials(user_id, db_session=db_session)
