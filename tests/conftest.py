"""
Shared fixtures: an in-memory SQLite credential store and fully-configured settings.
"""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config.settings import Settings
from connectors.registry import ConnectorRegistry
from database.models import Base, User


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def user_id(db_session: AsyncSession) -> str:
    user = User(user_id=uuid.uuid4(), email="ada@example.com", display_name="Ada", password_hash="x")
    db_session.add(user)
    await db_session.flush()
    return str(user.user_id)


@pytest.fixture
def oauth_settings() -> Settings:
    """Settings with every provider's client configured."""
    return Settings(
        _env_file=None,
        slack_client_id="slack-id",
        slack_client_secret="slack-secret",
        slack_redirect_uri="https://app.test/api/v1/connectors/slack/callback",
        notion_client_id="notion-id",
        notion_client_secret="notion-secret",
        notion_redirect_uri="https://app.test/api/v1/connectors/notion/callback",
        google_client_id="google-id",
        google_client_secret="google-secret",
        google_redirect_uri="https://app.test/api/v1/connectors/google_drive/callback",
    )


@pytest.fixture(autouse=True)
def _fresh_registry():
    ConnectorRegistry.reset()
    yield
    ConnectorRegistry.reset()
