"""Tests for the server's database lifecycle."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy import text

import notememo.database as database
from notememo.database import get_db
from notememo.main import app, lifespan


class TestDatabaseLifecycle:
    def test_import_opens_no_engine(self):
        assert not hasattr(database, "engine")
        assert not hasattr(database, "async_session_factory")

    @pytest.mark.asyncio
    async def test_lifespan_builds_engine_and_sessions(self):
        async with lifespan(app):
            engine = app.state.engine
            assert engine.url.drivername == "sqlite+aiosqlite"

            sessions = get_db(SimpleNamespace(app=app))
            session = await anext(sessions)
            assert session.bind is engine
            assert (await session.execute(text("SELECT 1"))).scalar() == 1
            with pytest.raises(StopAsyncIteration):
                await anext(sessions)

    @pytest.mark.asyncio
    async def test_failed_request_rolls_back(self):
        async with lifespan(app):
            sessions = get_db(SimpleNamespace(app=app))
            session = await anext(sessions)
            await session.execute(text("SELECT 1"))

            with pytest.raises(RuntimeError):
                await sessions.athrow(RuntimeError("handler failed"))

            assert not session.in_transaction()
