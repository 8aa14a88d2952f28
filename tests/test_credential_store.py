"""
Tests for the per-user credential store.
"""

import pytest
from sqlalchemy import func, select

from connectors import encryption
from connectors.credential_store import (
    disconnect,
    get_credential,
    get_user_credentials,
    list_connections,
    set_credential,
)
from connectors.encryption import TokenCipher
from connectors.google_drive import GoogleDriveConnector
from connectors.registry import ConnectorRegistry
from connectors.slack import SlackConnector
from database.models import UserConnection
from helpers import RecordingTransport, json_responder


def _grant(token: str, **extra) -> dict:
    data = {"access_token": token, "account_id": "acct", "account_label": "Workspace"}
    data.update(extra)
    return data


class TestSetAndGet:
    @pytest.mark.asyncio
    async def test_missing_credential_is_none(self, db_session, user_id):
        assert await get_credential(user_id, "slack", db_session=db_session) is None

    @pytest.mark.asyncio
    async def test_set_then_get(self, db_session, user_id):
        await set_credential(
            user_id, "slack", _grant("xoxp-1", account_id="U123"), db_session=db_session
        )
        cred = await get_credential(user_id, "slack", db_session=db_session)
        assert cred is not None
        assert cred.provider == "slack"
        assert cred.access_token == "xoxp-1"
        assert cred.account_id == "U123"
        assert cred.expires_at is None

    @pytest.mark.asyncio
    async def test_reauthorization_overwrites(self, db_session, user_id):
        await set_credential(user_id, "notion", _grant("secret-1", account_id="bot-1"), db_session=db_session)
        await set_credential(user_id, "notion", _grant("secret-2", account_id="bot-2"), db_session=db_session)

        cred = await get_credential(user_id, "notion", db_session=db_session)
        assert cred.access_token == "secret-2"
        assert cred.account_id == "bot-2"

        count = await db_session.scalar(
            select(func.count()).select_from(UserConnection).where(UserConnection.provider == "notion")
        )
        assert count == 1

    @pytest.mark.asyncio
    async def test_refresh_token_kept_when_new_grant_omits_it(self, db_session, user_id):
        await set_credential(
            user_id, "google_drive",
            _grant("ya29.a", refresh_token="1//r", expires_in=3600),
            db_session=db_session,
        )
        await set_credential(
            user_id, "google_drive", _grant("ya29.b", expires_in=3600), db_session=db_session
        )
        cred = await get_credential(user_id, "google_drive", db_session=db_session)
        assert cred.access_token == "ya29.b"
        assert cred.refresh_token == "1//r"

    @pytest.mark.asyncio
    async def test_providers_are_independent(self, db_session, user_id):
        await set_credential(user_id, "slack", _grant("xoxp"), db_session=db_session)
        await set_credential(user_id, "notion", _grant("secret"), db_session=db_session)

        creds = await get_user_credentials(user_id, db_session=db_session)
        assert list(creds) == ["slack", "notion"]
        assert creds["slack"].access_token == "xoxp"
        assert creds["notion"].access_token == "secret"


class TestListAndDisconnect:
    @pytest.mark.asyncio
    async def test_list_connections_hides_tokens(self, db_session, user_id):
        await set_credential(user_id, "slack", _grant("xoxp-secret"), db_session=db_session)
        connections = await list_connections(user_id, db_session=db_session)
        assert [c.provider for c in connections] == ["slack"]
        assert "xoxp-secret" not in connections[0].model_dump_json()

    @pytest.mark.asyncio
    async def test_disconnect(self, db_session, user_id):
        await set_credential(user_id, "slack", _grant("xoxp"), db_session=db_session)
        assert await disconnect(user_id, "slack", db_session=db_session) is True
        assert await get_credential(user_id, "slack", db_session=db_session) is None
        assert await disconnect(user_id, "slack", db_session=db_session) is False


class TestEncryption:
    @pytest.mark.asyncio
    async def test_tokens_encrypted_at_rest(self, db_session, user_id, monkeypatch):
        from cryptography.fernet import Fernet

        monkeypatch.setattr(encryption, "_cipher", TokenCipher(Fernet.generate_key().decode()))

        await set_credential(user_id, "slack", _grant("xoxp-plain"), db_session=db_session)
        stored = await db_session.scalar(select(UserConnection.access_token))
        assert stored != "xoxp-plain"

        cred = await get_credential(user_id, "slack", db_session=db_session)
        assert cred.access_token == "xoxp-plain"

    def test_cipher_without_key_is_passthrough(self):
        cipher = TokenCipher("")
        assert not cipher.enabled
        assert cipher.encrypt("abc") == "abc"
        assert cipher.decrypt("abc") == "abc"


class TestGoogleRefresh:
    @pytest.mark.asyncio
    async def test_expiring_token_is_refreshed(self, db_session, user_id, oauth_settings):
        transport = RecordingTransport(
            json_responder({"access_token": "ya29.fresh", "expires_in": 3599})
        )
        ConnectorRegistry().register(
            GoogleDriveConnector(settings=oauth_settings, client_factory=transport.client_factory())
        )
        await set_credential(
            user_id, "google_drive",
            _grant("ya29.stale", refresh_token="1//r", expires_in=30),
            db_session=db_session,
        )

        cred = await get_credential(user_id, "google_drive", db_session=db_session)

        assert cred.access_token == "ya29.fresh"
        assert cred.refresh_token == "1//r"
        assert len(transport.requests) == 1
        assert b"grant_type=refresh_token" in transport.requests[0].content

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_stale_token(self, db_session, user_id, oauth_settings):
        transport = RecordingTransport(json_responder({"error": "invalid_grant"}, status_code=400))
        ConnectorRegistry().register(
            GoogleDriveConnector(settings=oauth_settings, client_factory=transport.client_factory())
        )
        await set_credential(
            user_id, "google_drive",
            _grant("ya29.stale", refresh_token="1//r", expires_in=30),
            db_session=db_session,
        )

        cred = await get_credential(user_id, "google_drive", db_session=db_session)
        assert cred.access_token == "ya29.stale"


class TestSlackRefresh:
    @pytest.mark.asyncio
    async def test_rotated_user_token_is_refreshed(self, db_session, user_id, oauth_settings):
        transport = RecordingTransport(
            json_responder(
                {
                    "ok": True,
                    "token_type": "user",
                    "access_token": "xoxe.xoxp-fresh",
                    "refresh_token": "xoxe-2",
                    "expires_in": 43200,
                }
            )
        )
        ConnectorRegistry().register(
            SlackConnector(settings=oauth_settings, client_factory=transport.client_factory())
        )
        await set_credential(
            user_id, "slack",
            _grant("xoxe.xoxp-stale", refresh_token="xoxe-1", expires_in=30),
            db_session=db_session,
        )

        cred = await get_credential(user_id, "slack", db_session=db_session)

        assert cred.access_token == "xoxe.xoxp-fresh"
        assert cred.refresh_token == "xoxe-2"
        request = transport.requests[0]
        assert str(request.url) == "https://slack.com/api/oauth.v2.access"
        assert b"grant_type=refresh_token" in request.content
        assert b"refresh_token=xoxe-1" in request.content

    @pytest.mark.asyncio
    async def test_rejected_rotation_keeps_stale_token(self, db_session, user_id, oauth_settings):
        transport = RecordingTransport(json_responder({"ok": False, "error": "invalid_refresh_token"}))
        ConnectorRegistry().register(
            SlackConnector(settings=oauth_settings, client_factory=transport.client_factory())
        )
        await set_credential(
            user_id, "slack",
            _grant("xoxe.xoxp-stale", refresh_token="xoxe-1", expires_in=30),
            db_session=db_session,
        )

        cred = await get_credential(user_id, "slack", db_session=db_session)
        assert cred.access_token == "xoxe.xoxp-stale"
        assert len(transport.requests) == 1
