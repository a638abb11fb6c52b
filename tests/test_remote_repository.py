"""Tests for the SQLAlchemy-backed remote stores."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from notememo.constants import SEED_TIMESTAMP
from notememo.local_store.seed import seed_categories
from notememo.models import User
from notememo.remote_gateway.base import RemoteStoreUnavailable
from notememo.schemas import NoteCategory
from notememo.services.remote_repository import (
    SqlCategoryStore,
    SqlNoteStore,
    list_device_syncs,
    record_device_sync,
)
from tests.conftest import FakeClock, make_note


async def _user(db, user_id="u1"):
    db.add(User(id=user_id, access_code_hash=f"hash-{user_id}"))
    await db.flush()
    return user_id


class TestSqlNoteStore:
    @pytest.mark.asyncio
    async def test_upsert_returns_clock_time(self, test_db):
        user_id = await _user(test_db)
        store = SqlNoteStore(test_db, clock=FakeClock("2024-05-01T00:00:00.000Z"))

        sync_time = await store.upsert_many(user_id, [make_note("n1", "2024-01-01T00:00:00Z")])

        assert sync_time == "2024-05-01T00:00:00.000Z"
        assert [n.id for n in await store.read_all(user_id)] == ["n1"]

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self, test_db):
        user_id = await _user(test_db)
        store = SqlNoteStore(test_db)
        await store.upsert_many(user_id, [make_note("n1", "2024-01-01T00:00:00Z", title="v1", tags=["a"])])
        await store.upsert_many(user_id, [make_note("n1", "2024-01-02T00:00:00Z", title="v2")])

        notes = await store.read_all(user_id)

        assert len(notes) == 1
        assert notes[0].title == "v2"
        assert notes[0].tags == []

    @pytest.mark.asyncio
    async def test_read_updated_since_is_strict(self, test_db):
        user_id = await _user(test_db)
        store = SqlNoteStore(test_db)
        await store.upsert_many(
            user_id,
            [
                make_note("old", "2024-01-01T00:00:00Z"),
                make_note("edge", "2024-01-02T00:00:00Z"),
                make_note("new", "2024-01-03T00:00:00Z"),
            ],
        )

        result = await store.read_updated_since(user_id, "2024-01-02T00:00:00Z")

        assert [n.id for n in result] == ["new"]

    @pytest.mark.asyncio
    async def test_since_accepts_non_canonical_timestamp(self, test_db):
        user_id = await _user(test_db)
        store = SqlNoteStore(test_db)
        await store.upsert_many(user_id, [make_note("n1", "2024-01-02T00:00:00Z")])

        result = await store.read_updated_since(user_id, "2024-01-02T08:00:00+09:00")

        assert [n.id for n in result] == ["n1"]

    @pytest.mark.asyncio
    async def test_tombstones_returned_to_sync_but_not_visible(self, test_db):
        user_id = await _user(test_db)
        store = SqlNoteStore(test_db)
        tombstone = make_note("n1", "2024-01-03T00:00:00Z", deleted=True, deleted_at="2024-01-03T00:00:00Z")
        await store.upsert_many(user_id, [tombstone, make_note("n2", "2024-01-01T00:00:00Z")])

        assert {n.id for n in await store.read_all(user_id)} == {"n1", "n2"}
        assert [n.id for n in await store.read_visible(user_id)] == ["n2"]
        since = await store.read_updated_since(user_id, "2024-01-02T00:00:00Z")
        assert since[0].deleted and since[0].deleted_at == "2024-01-03T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_collections_are_scoped_per_user(self, test_db):
        alice = await _user(test_db, "alice")
        bob = await _user(test_db, "bob")
        store = SqlNoteStore(test_db)
        await store.upsert_many(alice, [make_note("n1", "2024-01-01T00:00:00Z", title="alice")])
        await store.upsert_many(bob, [make_note("n1", "2024-01-01T00:00:00Z", title="bob")])

        assert [n.title for n in await store.read_all(alice)] == ["alice"]
        assert [n.title for n in await store.read_all(bob)] == ["bob"]

    @pytest.mark.asyncio
    async def test_empty_push_still_reports_time(self, test_db):
        user_id = await _user(test_db)
        store = SqlNoteStore(test_db, clock=FakeClock("2024-05-01T00:00:00.000Z"))
        assert await store.upsert_many(user_id, []) == "2024-05-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_database_errors_become_unavailable(self):
        db = AsyncMock()
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        store = SqlNoteStore(db)

        with pytest.raises(RemoteStoreUnavailable):
            await store.read_all("u1")
        with pytest.raises(RemoteStoreUnavailable):
            await store.upsert_many("u1", [make_note("n1", "2024-01-01T00:00:00Z")])


class TestSqlCategoryStore:
    @pytest.mark.asyncio
    async def test_missing_updated_at_stamped_with_server_time(self, test_db):
        user_id = await _user(test_db)
        store = SqlCategoryStore(test_db, clock=FakeClock("2024-05-01T00:00:00.000Z"))

        await store.upsert_many(user_id, [NoteCategory(id="1", name="Tools")])

        (category,) = await store.read_all(user_id)
        assert category.updated_at == "2024-05-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_seed_categories_keep_their_stamp(self, test_db):
        user_id = await _user(test_db)
        store = SqlCategoryStore(test_db, clock=FakeClock("2026-03-01T00:00:00.000Z"))

        await store.upsert_many(user_id, seed_categories())

        assert {c.updated_at for c in await store.read_all(user_id)} == {SEED_TIMESTAMP}
        assert await store.read_updated_since(user_id, "2026-02-01T00:00:00Z") == []

    @pytest.mark.asyncio
    async def test_delete_not_present_in(self, test_db):
        user_id = await _user(test_db)
        store = SqlCategoryStore(test_db)
        await store.upsert_many(
            user_id, [NoteCategory(id="1", name="A"), NoteCategory(id="2", name="B"), NoteCategory(id="3", name="C")]
        )

        removed = await store.delete_not_present_in(user_id, {"1", "3"})

        assert removed == 1
        assert [c.id for c in await store.read_all(user_id)] == ["1", "3"]

    @pytest.mark.asyncio
    async def test_ensure_other_category(self, test_db):
        user_id = await _user(test_db)
        store = SqlCategoryStore(test_db)
        await store.upsert_many(user_id, [NoteCategory(id="4", name="Tools")])

        await store.ensure_other_category(user_id)
        await store.ensure_other_category(user_id)

        categories = await store.read_all(user_id)
        others = [c for c in categories if c.name == "其他"]
        assert len(others) == 1
        assert others[0].id != "4"

    @pytest.mark.asyncio
    async def test_read_updated_since(self, test_db):
        user_id = await _user(test_db)
        store = SqlCategoryStore(test_db)
        await store.upsert_many(
            user_id,
            [
                NoteCategory(id="1", name="A", updated_at="2024-01-01T00:00:00Z"),
                NoteCategory(id="2", name="B", updated_at="2024-01-03T00:00:00Z"),
            ],
        )

        result = await store.read_updated_since(user_id, "2024-01-02T00:00:00Z")

        assert [c.id for c in result] == ["2"]


class TestDeviceSyncInfo:
    @pytest.mark.asyncio
    async def test_record_and_list(self, test_db):
        user_id = await _user(test_db)
        await record_device_sync(test_db, user_id, "dev-a", "2024-01-01T00:00:00.000Z")
        await record_device_sync(test_db, user_id, "dev-b", "2024-01-02T00:00:00.000Z")
        await record_device_sync(test_db, user_id, "dev-a", "2024-01-03T00:00:00.000Z")

        devices = await list_device_syncs(test_db, user_id)

        assert [(d.device_id, d.last_sync_time) for d in devices] == [
            ("dev-a", "2024-01-03T00:00:00.000Z"),
            ("dev-b", "2024-01-02T00:00:00.000Z"),
        ]
