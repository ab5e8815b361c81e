"""Shared test fixtures."""

import asyncio
import os
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

# Keep the app's own engine off any real database.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from langchain_core.messages import AIMessage
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config import Settings
from app.db.models import Base, Event, News, Program, School

# Fixed "now" for content dates
NOW = datetime(2025, 9, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def reset_db_connection():
    """Reset database connection between tests to avoid event loop issues."""
    import app.db.connection as db_conn
    # Reset the global state before each test
    db_conn._engine = None
    db_conn._async_session_factory = None
    yield
    # Reset again after test
    db_conn._engine = None
    db_conn._async_session_factory = None


# Settings Fixtures

@pytest.fixture
def test_settings() -> Settings:
    """Test settings with defaults."""
    return Settings(
        env="development",
        debug=True,
        openai_api_key="sk-test",
        admin_api_key="admin-secret",
    )


# Database Fixtures

def run_sync(coro):
    """Run a coroutine on a private loop without touching the current one."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def engine(tmp_path) -> Generator[AsyncEngine, None, None]:
    """Throwaway SQLite database with all tables.

    NullPool keeps connections from outliving the event loop that opened
    them, so the same engine serves async tests and the TestClient.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    run_sync(_create_tables(engine))
    yield engine
    run_sync(engine.dispose())


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def seed_sample_content(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Two schools, three programs, two news items, one past and two upcoming events."""
    async with session_factory() as session:
        computing = School(
            name="School of Computing and Informatics",
            slug="computing",
            overview="Computer science, IT and data science.",
        )
        business = School(
            name="KeMU Business School",
            slug="business",
            overview="Business administration and finance.",
        )
        session.add_all([computing, business])
        await session.flush()

        session.add_all(
            [
                Program(
                    title="BSc. Computer Science",
                    slug="bsc-computer-science",
                    degree_type="Undergraduate",
                    duration="4 Years",
                    requirements="KCSE mean grade C+ with C+ in Mathematics and Physics",
                    overview="Software engineering, artificial intelligence and computer systems.",
                    school_id=computing.id,
                ),
                Program(
                    title="BSc. Information Technology",
                    slug="bsc-information-technology",
                    degree_type="Undergraduate",
                    duration="4 Years",
                    requirements="KCSE mean grade C+ with C+ in Mathematics",
                    overview="x" * 250,
                    school_id=computing.id,
                ),
                Program(
                    title="Master of Business Administration (MBA)",
                    slug="mba",
                    degree_type="Postgraduate",
                    duration="2 Years",
                    school_id=business.id,
                ),
                News(
                    title="New Computer Lab Opens",
                    slug="new-lab",
                    summary="A new laboratory for computing students.",
                    published_at=NOW - timedelta(days=1),
                ),
                News(
                    title="Alumni Milestone",
                    slug="alumni",
                    summary="Over 32,000 alumni worldwide.",
                    published_at=NOW - timedelta(days=20),
                ),
                Event(
                    title="Past Orientation",
                    date=NOW - timedelta(days=10),
                    venue="Main Campus",
                ),
                Event(
                    title="Graduation Ceremony",
                    date=NOW + timedelta(days=30),
                    venue="Graduation Square",
                    details="Conferment of degrees.",
                ),
                Event(
                    title="Registration Week",
                    date=NOW + timedelta(days=5),
                    venue="All Campuses",
                ),
            ]
        )
        await session.commit()


@pytest.fixture
def seeded_factory(
    session_factory: async_sessionmaker[AsyncSession],
) -> async_sessionmaker[AsyncSession]:
    """Session factory over a database holding sample content."""
    run_sync(seed_sample_content(session_factory))
    return session_factory


# LLM Mocks

def make_ai_message(
    content: str = "Mock response",
    input_tokens: int = 100,
    output_tokens: int = 20,
) -> AIMessage:
    return AIMessage(
        content=content,
        usage_metadata={
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
        },
    )


@pytest.fixture
def mock_chat_model() -> MagicMock:
    """Mock LangChain chat model."""
    model = MagicMock()
    model.ainvoke = AsyncMock(return_value=make_ai_message())
    model.bind = MagicMock(return_value=model)
    return model


@pytest.fixture
def mock_provider(mock_chat_model: MagicMock) -> MagicMock:
    """Mock LLM provider returning the mock chat model."""
    provider = MagicMock()
    provider.get_chat_model = MagicMock(return_value=mock_chat_model)
    provider.model_name = "gpt-4o-mini"
    provider.provider_name = "openai"
    provider.is_configured = True
    return provider


def make_moderation_client(flagged: bool = False, categories: dict | None = None) -> MagicMock:
    """Mock AsyncOpenAI client with a canned moderation result."""
    result = MagicMock()
    result.flagged = flagged
    result.categories = categories or {"violence": flagged, "harassment": False}
    result.category_scores = {name: 0.99 if hit else 0.01 for name, hit in result.categories.items()}

    response = MagicMock()
    response.results = [result]

    client = MagicMock()
    client.moderations.create = AsyncMock(return_value=response)
    return client


@pytest.fixture
def moderation_client() -> MagicMock:
    """Moderation client that passes everything."""
    return make_moderation_client(flagged=False)

