"""Remote store database wiring.

Nothing here connects at import time. The hosting process builds an engine
with :func:`create_db_engine`, keeps it together with its session factory on
``app.state`` and disposes it on shutdown (see ``notememo.main.lifespan``).
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""


def create_db_engine(url: str) -> AsyncEngine:
    """Build the async engine for *url* (an async driver URL)."""
    return create_async_engine(url, echo=False, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session from the app's session factory.

    The session commits when the request handler returns and rolls back if
    it raises.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
