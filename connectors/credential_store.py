"""
Credential store — get / set / list per-user OAuth credentials.

One ``UserConnection`` row per (user, provider).  Writes are a single
``INSERT … ON CONFLICT DO UPDATE`` so re-authorization overwrites the row
(last write wins) and concurrent completions for different providers never
touch the same row.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import PROVIDERS
from connectors.encryption import decrypt_token, encrypt_token
from database.models import UserConnection
from database.session import async_session_factory
from utils.schemas import ConnectionInfo, ProviderCredential

logger = logging.getLogger(__name__)

_REFRESH_BUFFER = timedelta(seconds=120)


def _to_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return uuid.UUID(value) if isinstance(value, str) else value


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@asynccontextmanager
async def _session_scope(db_session: Optional[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Use the caller's session, or open (and commit/close) our own."""
    if db_session is not None:
        yield db_session
        return
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _to_credential(conn: UserConnection) -> ProviderCredential:
    return ProviderCredential(
        provider=conn.provider,
        access_token=decrypt_token(conn.access_token),
        refresh_token=decrypt_token(conn.refresh_token) or None,
        account_id=conn.account_id,
        account_label=conn.account_label,
        expires_at=_as_aware(conn.expires_at),
        scopes=conn.scopes or [],
        provider_meta=conn.provider_meta or {},
    )


def _needs_refresh(conn: UserConnection) -> bool:
    expires_at = _as_aware(conn.expires_at)
    return expires_at is not None and expires_at < datetime.now(timezone.utc) + _REFRESH_BUFFER


async def _refresh(session: AsyncSession, conn: UserConnection) -> None:
    """
    Swap an expiring access token for a fresh one in place.

    On failure the stale token is kept; the provider call that uses it will
    fail and be reported for that provider alone.
    """
    from connectors.registry import ConnectorRegistry

    connector = ConnectorRegistry().get(conn.provider)
    refresh_token = decrypt_token(conn.refresh_token)
    if connector is None or not refresh_token:
        return

    try:
        refreshed = await connector.refresh_access_token(refresh_token)
    except Exception as exc:
        logger.warning("Token refresh failed for %s/%s: %s", conn.provider, conn.user_id, exc)
        return

    now = datetime.now(timezone.utc)
    conn.access_token = encrypt_token(refreshed["access_token"])
    conn.expires_at = now + timedelta(seconds=refreshed.get("expires_in") or 3600)
    conn.last_refreshed = now
    # Some providers rotate refresh tokens
    if refreshed.get("refresh_token"):
        conn.refresh_token = encrypt_token(refreshed["refresh_token"])
    await session.flush()
    logger.info("Refreshed %s token for user %s", conn.provider, conn.user_id)


async def get_credential(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> Optional[ProviderCredential]:
    """Point lookup. Returns ``None`` when the user never connected ``provider``."""
    async with _session_scope(db_session) as session:
        result = await session.execute(
            select(UserConnection).where(
                UserConnection.user_id == _to_uuid(user_id),
                UserConnection.provider == provider,
            )
        )
        conn = result.scalar_one_or_none()
        if conn is None:
            return None
        if _needs_refresh(conn):
            await _refresh(session, conn)
        return _to_credential(conn)


async def get_user_credentials(
    user_id: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> Dict[str, ProviderCredential]:
    """All credentials for a user, keyed by provider, in provider order."""
    async with _session_scope(db_session) as session:
        result = await session.execute(
            select(UserConnection).where(UserConnection.user_id == _to_uuid(user_id))
        )
        rows = {conn.provider: conn for conn in result.scalars().all()}

        credentials: Dict[str, ProviderCredential] = {}
        for provider in PROVIDERS:
            conn = rows.get(provider)
            if conn is None:
                continue
            if _needs_refresh(conn):
                await _refresh(session, conn)
            credentials[provider] = _to_credential(conn)
        return credentials


async def set_credential(
    user_id: str,
    provider: str,
    token_data: dict,
    *,
    db_session: Optional[AsyncSession] = None,
) -> ProviderCredential:
    """
    Upsert the credential for (user, provider).

    Parameters
    ----------
    token_data : dict
        Output of ``connector.handle_callback()``: access_token,
        refresh_token, expires_in, scopes, account_id, account_label,
        provider_meta.  A grant without a refresh token keeps the stored one.
    """
    now = datetime.now(timezone.utc)
    expires_in = token_data.get("expires_in")
    values = {
        "account_label": token_data.get("account_label") or "",
        "account_id": token_data.get("account_id") or "",
        "access_token": encrypt_token(token_data["access_token"]),
        "refresh_token": encrypt_token(token_data.get("refresh_token")),
        "token_type": "Bearer",
        "expires_at": now + timedelta(seconds=expires_in) if expires_in else None,
        "scopes": token_data.get("scopes") or [],
        "provider_meta": token_data.get("provider_meta") or {},
        "connected_at": now,
        "updated_at": now,
    }

    async with _session_scope(db_session) as session:
        dialect = session.get_bind().dialect.name
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert(UserConnection).values(
            connection_id=uuid.uuid4(),
            user_id=_to_uuid(user_id),
            provider=provider,
            **values,
        )
        update_values = dict(values)
        update_values["refresh_token"] = func.coalesce(
            stmt.excluded.refresh_token, UserConnection.refresh_token
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "provider"],
            set_=update_values,
        )
        await session.execute(stmt)
        await session.flush()

        result = await session.execute(
            select(UserConnection)
            .where(
                UserConnection.user_id == _to_uuid(user_id),
                UserConnection.provider == provider,
            )
            .execution_options(populate_existing=True)
        )
        conn = result.scalar_one()
        logger.info("Stored %s credential for user %s", provider, user_id)
        return _to_credential(conn)


async def list_connections(
    user_id: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> List[ConnectionInfo]:
    """Return all connections for a user (no tokens exposed)."""
    async with _session_scope(db_session) as session:
        result = await session.execute(
            select(UserConnection).where(UserConnection.user_id == _to_uuid(user_id))
        )
        return [
            ConnectionInfo(
                provider=c.provider,
                account_label=c.account_label,
                account_id=c.account_id,
                scopes=c.scopes or [],
                connected_at=c.connected_at.isoformat() if c.connected_at else None,
                updated_at=c.updated_at.isoformat() if c.updated_at else None,
                expires_at=c.expires_at.isoformat() if c.expires_at else None,
            )
            for c in result.scalars().all()
        ]


async def disconnect(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> bool:
    """Delete the stored credential. Returns False if there was none."""
    async with _session_scope(db_session) as session:
        result = await session.execute(
            delete(UserConnection).where(
                UserConnection.user_id == _to_uuid(user_id),
                UserConnection.provider == provider,
            )
        )
        deleted = result.rowcount > 0
        if deleted:
            logger.info("Disconnected %s for user %s", provider, user_id)
        return deleted
