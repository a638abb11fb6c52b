"""Per-device facade wiring local storage, sync and CRUD together.

Usage::

    device = NoteMemoDevice.from_settings()
    if await device.connect(access_code="team-code"):
        await device.sync_now()
    notes = await device.get_all_notes()
    await device.aclose()

Local reads and edits always work against the device's own store. When sync
is enabled, reads also trigger a best-effort sync pass first; failures only
show up in :meth:`status`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx

from notememo.config import Settings, SyncConfig, get_settings
from notememo.constants import EntityType
from notememo.local_store import (
    DeviceIdentity,
    FileStorage,
    LocalStorage,
    WatermarkStore,
    categories_store,
    notes_store,
)
from notememo.remote_gateway.base import RemoteStore
from notememo.remote_gateway.client import NoteMemoClient
from notememo.remote_gateway.remote_store import HttpRemoteStore
from notememo.schemas import Note, NoteCategory
from notememo.services.auto_sync import AutoSyncRunner
from notememo.services.note_service import CategoryService, NoteService
from notememo.services.sync_coordinator import CategorySyncCoordinator, SyncCoordinator, SyncResult
from notememo.services.sync_status import SyncStatusReporter, SyncStatusSnapshot
from notememo.utils.datetime_utils import utc_now_iso

logger = logging.getLogger(__name__)


class NoteMemoDevice:
    """One installation of NoteMemo.

    Args:
        storage: On-device key-value storage, or None to run without persistence.
        settings: Application settings (defaults to :func:`get_settings`).
        clock: Clock used for local edits.
    """

    def __init__(
        self,
        storage: LocalStorage | None,
        *,
        settings: Settings | None = None,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._settings = settings or get_settings()
        self.device_id = DeviceIdentity(storage).get_device_id()

        self.notes_store = notes_store(storage)
        self.categories_store = categories_store(storage)
        self.notes = NoteService(self.notes_store, clock=clock)
        self.categories = CategoryService(self.categories_store, self.notes, clock=clock)

        self.reporter = SyncStatusReporter()
        config = SyncConfig()
        self.note_sync: SyncCoordinator[Note] = SyncCoordinator(
            EntityType.NOTES,
            self.notes_store,
            None,
            WatermarkStore(storage, EntityType.NOTES),
            self.device_id,
            config,
            fetch_timeout=self._settings.SYNC_FETCH_TIMEOUT,
            listeners=[self.reporter],
        )
        self.category_sync = CategorySyncCoordinator(
            EntityType.CATEGORIES,
            self.categories_store,
            None,
            WatermarkStore(storage, EntityType.CATEGORIES),
            self.device_id,
            config,
            fetch_timeout=self._settings.SYNC_FETCH_TIMEOUT,
            listeners=[self.reporter],
        )

        self._auto_sync = AutoSyncRunner(self.sync_now, self._settings.SYNC_INTERVAL_SECONDS)
        self._client: NoteMemoClient | None = None
        self._owns_client = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> NoteMemoDevice:
        """Device persisting under ``LOCAL_DATA_DIR``."""
        settings = settings or get_settings()
        return cls(FileStorage(settings.LOCAL_DATA_DIR), settings=settings)

    @property
    def sync_config(self) -> SyncConfig:
        return self.note_sync.config

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all_notes(self) -> list[Note]:
        """Visible notes, after a sync pass when sync is enabled."""
        if self.sync_config.sync_enabled:
            await self.note_sync.sync()
        return self.notes.list_notes()

    async def get_all_categories(self) -> list[NoteCategory]:
        """Deduplicated categories, after a sync pass when sync is enabled."""
        if self.sync_config.sync_enabled:
            await self.category_sync.sync()
        return self.categories.list_categories()

    # ------------------------------------------------------------------
    # Sync control
    # ------------------------------------------------------------------

    async def connect(
        self,
        access_code: str,
        url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> bool:
        """Open a client to the sync server and enable sync through it.

        The client is owned by the device and closed by :meth:`aclose`.
        """
        client = NoteMemoClient(
            url or self._settings.SYNC_SERVER_URL,
            access_code,
            device_id=self.device_id,
            transport=transport,
        )
        await self._release_client()
        enabled = await self.enable_sync(client)
        self._owns_client = True
        return enabled

    async def enable_sync(self, client: NoteMemoClient) -> bool:
        """Resolve the user identity through *client* and attach HTTP stores.

        Returns:
            True if the server confirmed sync for this access code.
        """
        client.device_id = self.device_id
        self._client = client
        self._owns_client = False

        response = await self.reporter.refresh_devices(client)
        if response is None or not response.enabled or not response.user_id:
            logger.info("Sync not enabled for device %s", self.device_id)
            self._apply_config(SyncConfig(sync_enabled=False))
            return False

        self.use_remote_stores(
            HttpRemoteStore(client, EntityType.NOTES),
            HttpRemoteStore(client, EntityType.CATEGORIES),
            user_identity=response.user_id,
        )
        return True

    def use_remote_stores(
        self,
        notes_remote: RemoteStore[Note],
        categories_remote: RemoteStore[NoteCategory],
        user_identity: str,
    ) -> None:
        """Sync against explicit remote stores (e.g. SQL-backed ones)."""
        self.note_sync.remote_store = notes_remote
        self.category_sync.remote_store = categories_remote
        self._apply_config(SyncConfig(sync_enabled=True, user_identity=user_identity))
        self.reporter.mark_enabled(user_identity)
        logger.info("Sync enabled for device %s as user %s", self.device_id, user_identity)

    def disable_sync(self) -> None:
        self._apply_config(SyncConfig(sync_enabled=False, user_identity=self.sync_config.user_identity))
        self.reporter.mark_disabled()
        logger.info("Sync disabled for device %s", self.device_id)

    async def sync_now(self) -> dict[EntityType, SyncResult]:
        """Run one pass per entity type, categories first."""
        return {
            EntityType.CATEGORIES: await self.category_sync.sync(),
            EntityType.NOTES: await self.note_sync.sync(),
        }

    def force_resync(self) -> None:
        """Forget both watermarks so the next pass fetches everything."""
        self.category_sync.force_resync()
        self.note_sync.force_resync()

    def status(self) -> SyncStatusSnapshot:
        return self.reporter.snapshot()

    async def refresh_status(self) -> SyncStatusSnapshot:
        """Re-read the known devices from the server, then return the status."""
        if self._client is not None:
            await self.reporter.refresh_devices(self._client)
        return self.reporter.snapshot()

    def start_auto_sync(self) -> None:
        self._auto_sync.start()

    async def stop_auto_sync(self) -> None:
        await self._auto_sync.stop()

    @property
    def auto_sync_running(self) -> bool:
        return self._auto_sync.running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self.stop_auto_sync()
        await self._release_client()

    async def __aenter__(self) -> NoteMemoDevice:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def _apply_config(self, config: SyncConfig) -> None:
        self.note_sync.config = config
        self.category_sync.config = config

    async def _release_client(self) -> None:
        client, self._client = self._client, None
        if client is not None and self._owns_client:
            await client.aclose()
        self._owns_client = False
