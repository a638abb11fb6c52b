import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing notememo modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["SYNC_ENABLED"] = "true"
os.environ["ACCESS_CODES"] = "test-code,other-code"

TEST_ACCESS_CODE = "test-code"
AUTH_HEADERS = {"x-access-code": TEST_ACCESS_CODE}


class FakeClock:
    """Settable clock returning canonical ISO timestamps."""

    def __init__(self, now: str = "2024-01-01T00:00:00.000Z") -> None:
        self.now = now

    def __call__(self) -> str:
        return self.now

    def set(self, value: str) -> None:
        from notememo.utils.datetime_utils import normalize_iso

        self.now = normalize_iso(value)


@pytest.fixture
def server_clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture(scope="function")
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async session on a fresh in-memory SQLite database."""
    from notememo.database import Base
    import notememo.models  # noqa: F401 - Import to register models with Base

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_app(test_db: AsyncSession, server_clock: FakeClock):
    """Provide the FastAPI app bound to the test database and a pinned clock."""
    from notememo.database import get_db
    from notememo.main import app
    from notememo.utils.datetime_utils import get_clock

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: server_clock
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing with test database."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def empty_storage():
    """MemoryStorage whose note and category collections exist but are empty."""
    from notememo.local_store import CATEGORIES_STORAGE_KEY, NOTES_STORAGE_KEY, MemoryStorage

    storage = MemoryStorage()
    storage.set_item(NOTES_STORAGE_KEY, "[]")
    storage.set_item(CATEGORIES_STORAGE_KEY, "[]")
    return storage


def make_note(note_id: str, updated_at: str, **fields):
    from notememo.schemas import Note

    fields.setdefault("title", f"Note {note_id}")
    fields.setdefault("created_at", updated_at)
    return Note(id=note_id, updated_at=updated_at, **fields)
