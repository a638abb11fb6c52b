"""End-to-end sync between two devices through the FastAPI server."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from notememo.client import NoteMemoDevice
from notememo.config import Settings
from notememo.constants import EntityType, SyncDisplayState, SyncOutcome
from notememo.local_store import MemoryStorage
from notememo.remote_gateway.client import NoteMemoClient
from notememo.remote_gateway.remote_store import HttpRemoteStore
from tests.conftest import TEST_ACCESS_CODE, FakeClock, empty_storage, make_note

_SETTINGS = Settings(SYNC_FETCH_TIMEOUT=5.0, SYNC_INTERVAL_SECONDS=60)


async def _connected_device(app, storage=None, clock=None) -> NoteMemoDevice:
    device = NoteMemoDevice(
        storage if storage is not None else empty_storage(),
        settings=_SETTINGS,
        clock=clock or FakeClock(),
    )
    assert await device.connect(TEST_ACCESS_CODE, url="http://test", transport=ASGITransport(app=app))
    return device


@pytest_asyncio.fixture
async def devices(test_app):
    device_a = await _connected_device(test_app, clock=FakeClock())
    device_b = await _connected_device(test_app, clock=FakeClock())
    yield device_a, device_b
    await device_a.aclose()
    await device_b.aclose()


class TestTwoDeviceScenarios:
    @pytest.mark.asyncio
    async def test_edit_on_one_device_replaces_note_on_the_other(self, devices, server_clock):
        device_a, device_b = devices

        # Device A creates n1 and syncs; its watermark is the server time.
        device_a.notes_store.upsert_many([make_note("n1", "2024-01-01T00:00:00Z", title="original")])
        server_clock.set("2024-01-01T00:00:00Z")
        result = await device_a.note_sync.sync()
        assert result.status == SyncOutcome.SYNCED
        assert device_a.note_sync.watermark == "2024-01-01T00:00:00.000Z"

        # Device B starts empty and receives n1.
        notes_b = await device_b.get_all_notes()
        assert [n.id for n in notes_b] == ["n1"]

        # Device B edits n1 and syncs.
        device_b.notes_store.upsert_many(
            [make_note("n1", "2024-01-02T00:00:00Z", title="edited on B", created_at="2024-01-01T00:00:00Z")]
        )
        server_clock.set("2024-01-02T00:00:00Z")
        result = await device_b.note_sync.sync()
        assert result.pushed == 1

        # Device A syncs incrementally from its stored watermark.
        server_clock.set("2024-01-02T06:00:00Z")
        result = await device_a.note_sync.sync()

        notes_a = device_a.notes.list_notes()
        assert result.mode == "incremental"
        assert [n.id for n in notes_a] == ["n1"]
        assert notes_a[0].title == "edited on B"
        assert device_a.note_sync.watermark == "2024-01-02T06:00:00.000Z"

    @pytest.mark.asyncio
    async def test_deletion_propagates(self, devices, server_clock):
        device_a, device_b = devices
        device_a.notes_store.upsert_many([make_note("n1", "2024-01-02T00:00:00Z")])
        server_clock.set("2024-01-02T00:00:00Z")
        await device_a.note_sync.sync()
        await device_b.note_sync.sync()
        assert [n.id for n in device_b.notes.list_notes()] == ["n1"]

        # Device A soft-deletes n1 at 2024-01-03 and syncs.
        device_a.notes._clock.set("2024-01-03T00:00:00Z")
        assert device_a.notes.delete_note("n1")
        server_clock.set("2024-01-03T00:00:00Z")
        await device_a.note_sync.sync()

        # Device B, holding the older live copy, syncs afterwards.
        server_clock.set("2024-01-03T01:00:00Z")
        notes_b = await device_b.get_all_notes()

        assert notes_b == []
        tombstone = device_b.notes_store.get("n1", include_deleted=True)
        assert tombstone.deleted
        assert tombstone.updated_at == "2024-01-03T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_deletion_reaches_a_device_without_watermark(self, test_app, server_clock):
        device_a = await _connected_device(test_app)
        device_a.notes_store.upsert_many(
            [make_note("n1", "2024-01-03T00:00:00Z", deleted=True, deleted_at="2024-01-03T00:00:00Z")]
        )
        await device_a.note_sync.sync()

        # A fresh device that still holds an old live copy performs a full sync.
        storage = empty_storage()
        device_c = NoteMemoDevice(storage, settings=_SETTINGS, clock=FakeClock())
        device_c.notes_store.upsert_many([make_note("n1", "2024-01-01T00:00:00Z")])
        await device_c.connect(TEST_ACCESS_CODE, url="http://test", transport=ASGITransport(app=test_app))

        assert await device_c.get_all_notes() == []
        await device_a.aclose()
        await device_c.aclose()

    @pytest.mark.asyncio
    async def test_categories_converge_by_name(self, devices, server_clock):
        device_a, device_b = devices
        device_a.categories.create_category("Tools")
        server_clock.set("2024-01-02T00:00:00Z")
        await device_a.sync_now()

        # B independently created the same name with different case before syncing.
        device_b.categories.create_category("tools")
        await device_b.sync_now()
        await device_a.sync_now()

        for device in (device_a, device_b):
            names = [c.name.lower() for c in device.categories.list_categories()]
            assert names.count("tools") == 1
            assert "其他" in names

    @pytest.mark.asyncio
    async def test_unreachable_server_leaves_local_crud_working(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        device = NoteMemoDevice(empty_storage(), settings=_SETTINGS, clock=FakeClock())
        connected = await device.connect(TEST_ACCESS_CODE, url="http://test", transport=httpx.MockTransport(refuse))
        assert connected is False

        note = device.notes.create_note("offline note")

        assert [n.id for n in await device.get_all_notes()] == [note.id]
        assert device.status().state == SyncDisplayState.ERROR
        await device.aclose()

    @pytest.mark.asyncio
    async def test_server_outage_mid_session_falls_back_to_local(self, test_app):
        device = await _connected_device(test_app)
        note = device.notes.create_note("written during outage")

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with NoteMemoClient(
            "http://test", TEST_ACCESS_CODE, transport=httpx.MockTransport(refuse)
        ) as broken:
            device.note_sync.remote_store = HttpRemoteStore(broken, EntityType.NOTES)
            notes = await device.get_all_notes()

        assert [n.id for n in notes] == [note.id]
        assert device.note_sync.watermark is None
        assert device.status().state == SyncDisplayState.ERROR
        await device.aclose()


class TestDeviceFacade:
    @pytest.mark.asyncio
    async def test_status_after_sync_lists_devices(self, devices, server_clock):
        device_a, _ = devices
        server_clock.set("2024-01-05T00:00:00Z")

        results = await device_a.sync_now()
        snapshot = await device_a.refresh_status()

        assert list(results) == [EntityType.CATEGORIES, EntityType.NOTES]
        assert all(r.ok for r in results.values())
        assert snapshot.state == SyncDisplayState.ENABLED
        assert snapshot.last_sync_time == "2024-01-05T00:00:00.000Z"
        assert device_a.device_id in [d.device_id for d in snapshot.devices]

    @pytest.mark.asyncio
    async def test_disable_sync_stops_remote_calls(self, devices):
        device_a, _ = devices
        device_a.disable_sync()

        results = await device_a.sync_now()

        assert all(r.status == SyncOutcome.DISABLED for r in results.values())
        assert device_a.status().state == SyncDisplayState.DISABLED

    @pytest.mark.asyncio
    async def test_force_resync_clears_watermarks(self, devices):
        device_a, _ = devices
        await device_a.sync_now()
        assert device_a.note_sync.watermark is not None

        device_a.force_resync()

        assert device_a.note_sync.watermark is None
        assert device_a.category_sync.watermark is None

    @pytest.mark.asyncio
    async def test_rejected_access_code_leaves_sync_disabled(self, test_app):
        device = NoteMemoDevice(MemoryStorage(), settings=_SETTINGS)

        enabled = await device.connect("wrong-code", url="http://test", transport=ASGITransport(app=test_app))

        assert enabled is False
        assert device.sync_config.sync_enabled is False
        assert device.status().state == SyncDisplayState.DISABLED
        assert len(await device.get_all_notes()) == 4
        await device.aclose()

    @pytest.mark.asyncio
    async def test_auto_sync_start_stop(self, devices):
        device_a, _ = devices
        device_a.start_auto_sync()
        assert device_a.auto_sync_running
        await device_a.stop_auto_sync()
        assert not device_a.auto_sync_running
