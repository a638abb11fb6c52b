"""Per-entity sync pass between the local store and a remote store.

One pass walks a fixed sequence of phases::

    IDLE → CHECK_IDENTITY → DETERMINE_MODE → FETCH_REMOTE_DELTA → MERGE
         → PERSIST_LOCAL → PUSH_LOCAL_DELTA → ADVANCE_WATERMARK → IDLE

- With no stored watermark the pass runs in *full* mode and fetches every
  remote record (tombstones included); otherwise it runs *incremental* and
  fetches only records updated after the watermark.
- The fetch is bounded by ``fetch_timeout``. A timeout or connectivity
  failure ends the pass before anything is pushed; the local store is left
  as it was and the watermark does not move.
- The watermark advances to the server-reported ``syncTime`` only after the
  push is confirmed.
- Records edited while the push is awaited may carry an ``updatedAt`` older
  than that ``syncTime``. Their ids are kept with the watermark and sent by
  id on the next pass.
- A pass never raises. Every outcome is reported as a :class:`SyncResult`.

At most one pass per coordinator runs at a time; overlapping calls return a
``skipped`` result immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol

from notememo.config import SyncConfig
from notememo.constants import EntityType, SyncMode, SyncOutcome, SyncPhase
from notememo.local_store.adapter import LocalStoreAdapter
from notememo.local_store.watermark import WatermarkStore
from notememo.remote_gateway.base import (
    RemoteAuthError,
    RemoteStore,
    RemoteStoreUnavailable,
    RemoteSyncDisabled,
)
from notememo.schemas import NoteCategory, R
from notememo.services.merge import merge_records, remove_duplicate_categories
from notememo.utils.datetime_utils import is_newer, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 5.0


@dataclass
class SyncResult:
    """Summary of one sync pass for one entity type."""

    entity: EntityType
    status: SyncOutcome
    mode: SyncMode | None = None
    pulled: int = 0
    pushed: int = 0
    merged: int = 0
    sync_time: str | None = None
    error: str | None = None
    finished_at: str = field(default_factory=utc_now_iso)

    @property
    def ok(self) -> bool:
        return self.status == SyncOutcome.SYNCED


class SyncListener(Protocol):
    """Receives phase transitions and pass results (see ``SyncStatusReporter``)."""

    def on_phase(self, entity: EntityType, phase: SyncPhase) -> None: ...

    def on_result(self, result: SyncResult) -> None: ...


class SyncCoordinator(Generic[R]):
    """Runs sync passes for one entity type.

    Args:
        entity: Entity type this coordinator syncs.
        local_store: The device's local collection.
        remote_store: Remote collection, or None while sync is not configured.
        watermarks: Per-device watermark store for *entity*.
        device_id: This installation's device token.
        config: Current sync switch and user identity.
        fetch_timeout: Seconds allowed for the remote read.
        listeners: Objects notified of phase changes and results.
    """

    def __init__(
        self,
        entity: EntityType,
        local_store: LocalStoreAdapter[R],
        remote_store: RemoteStore[R] | None,
        watermarks: WatermarkStore,
        device_id: str,
        config: SyncConfig | None = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        listeners: Sequence[SyncListener] = (),
    ) -> None:
        self._entity = entity
        self._local = local_store
        self._remote = remote_store
        self._watermarks = watermarks
        self._device_id = device_id
        self._config = config or SyncConfig()
        self._fetch_timeout = fetch_timeout
        self._listeners: list[SyncListener] = list(listeners)
        self._phase = SyncPhase.IDLE
        self._in_progress = False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def entity(self) -> EntityType:
        return self._entity

    @property
    def config(self) -> SyncConfig:
        return self._config

    @config.setter
    def config(self, value: SyncConfig) -> None:
        self._config = value

    @property
    def remote_store(self) -> RemoteStore[R] | None:
        return self._remote

    @remote_store.setter
    def remote_store(self, value: RemoteStore[R] | None) -> None:
        self._remote = value

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def watermark(self) -> str | None:
        return self._watermarks.get(self._device_id)

    def add_listener(self, listener: SyncListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def sync(self) -> SyncResult:
        """Run one sync pass, or skip if a pass is already running."""
        if self._in_progress:
            logger.info("Sync of %s already in progress, skipping", self._entity)
            return SyncResult(entity=self._entity, status=SyncOutcome.SKIPPED)

        self._in_progress = True
        try:
            result = await self._run_pass()
        except Exception as exc:
            logger.exception("Unexpected error while syncing %s", self._entity)
            self._set_phase(SyncPhase.ERROR)
            result = SyncResult(entity=self._entity, status=SyncOutcome.ERROR, error=str(exc))
        finally:
            self._in_progress = False
            self._set_phase(SyncPhase.IDLE)

        for listener in self._listeners:
            listener.on_result(result)
        return result

    def force_resync(self) -> None:
        """Clear the watermark so the next pass fetches everything."""
        self._watermarks.clear(self._device_id)
        logger.info("Cleared %s watermark for device %s", self._entity, self._device_id)

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------

    async def _run_pass(self) -> SyncResult:
        self._set_phase(SyncPhase.CHECK_IDENTITY)
        user_id = self._config.user_identity
        remote = self._remote
        if not self._config.sync_enabled or not user_id or remote is None:
            return SyncResult(
                entity=self._entity,
                status=SyncOutcome.DISABLED,
                error="Sync is not configured",
            )

        self._set_phase(SyncPhase.DETERMINE_MODE)
        watermark = self._watermarks.get(self._device_id)
        mode = SyncMode.INCREMENTAL if watermark else SyncMode.FULL

        self._set_phase(SyncPhase.FETCH_REMOTE_DELTA)
        try:
            remote_records = await asyncio.wait_for(
                self._fetch(remote, user_id, watermark), timeout=self._fetch_timeout
            )
        except TimeoutError:
            logger.warning(
                "Fetching %s timed out after %.1fs, using local data", self._entity, self._fetch_timeout
            )
            return self._failed(mode, SyncOutcome.OFFLINE, "Remote fetch timed out")
        except (RemoteAuthError, RemoteSyncDisabled) as exc:
            logger.warning("Remote refused %s sync: %s", self._entity, exc.message)
            return self._failed(mode, SyncOutcome.DISABLED, exc.message)
        except RemoteStoreUnavailable as exc:
            logger.warning("Remote unavailable while fetching %s: %s", self._entity, exc.message)
            return self._failed(mode, SyncOutcome.OFFLINE, exc.message)

        self._set_phase(SyncPhase.MERGE)
        local_records = self._local.read_all_including_tombstones()
        resolved = self._resolve(merge_records(local_records, remote_records))

        self._set_phase(SyncPhase.PERSIST_LOCAL)
        changed = self._persist(local_records, resolved)
        persisted = {r.id: r for r in self._local.read_all_including_tombstones()}

        self._set_phase(SyncPhase.PUSH_LOCAL_DELTA)
        outgoing = self._outgoing(resolved, watermark, self._watermarks.pending_ids(self._device_id))
        try:
            sync_time = await remote.upsert_many(user_id, outgoing)
            await self._after_push(remote, user_id, outgoing)
        except (RemoteAuthError, RemoteSyncDisabled) as exc:
            logger.warning("Remote refused %s push: %s", self._entity, exc.message)
            return self._failed(mode, SyncOutcome.DISABLED, exc.message, pulled=len(remote_records))
        except RemoteStoreUnavailable as exc:
            logger.warning("Pushing %s failed, will retry next pass: %s", self._entity, exc.message)
            return self._failed(mode, SyncOutcome.OFFLINE, exc.message, pulled=len(remote_records))

        self._set_phase(SyncPhase.ADVANCE_WATERMARK)
        self._watermarks.set(self._device_id, sync_time)
        # Edits that landed while the push was awaited are not covered by sync_time.
        edited = {r.id for r in self._local.read_all_including_tombstones() if persisted.get(r.id) != r}
        self._watermarks.set_pending_ids(self._device_id, edited)
        if edited:
            logger.info("%d %s edited during push, queued for the next pass", len(edited), self._entity)

        logger.info(
            "Synced %s (%s): pulled=%d pushed=%d changed=%d syncTime=%s",
            self._entity,
            mode,
            len(remote_records),
            len(outgoing),
            changed,
            sync_time,
        )
        return SyncResult(
            entity=self._entity,
            status=SyncOutcome.SYNCED,
            mode=mode,
            pulled=len(remote_records),
            pushed=len(outgoing),
            merged=changed,
            sync_time=sync_time,
        )

    async def _fetch(self, remote: RemoteStore[R], user_id: str, watermark: str | None) -> list[R]:
        if watermark is None:
            return await remote.read_all(user_id)
        return await remote.read_updated_since(user_id, watermark)

    # ------------------------------------------------------------------
    # Entity-specific steps
    # ------------------------------------------------------------------

    def _resolve(self, merged: list[R]) -> list[R]:
        return merged

    def _persist(self, local_records: list[R], resolved: list[R]) -> int:
        return self._local.upsert_many(resolved)

    def _outgoing(self, resolved: list[R], watermark: str | None, pending: set[str]) -> list[R]:
        """Records changed locally since the last confirmed sync."""
        if watermark is None:
            return list(resolved)
        return [r for r in resolved if r.id in pending or is_newer(r.modified_at, watermark)]

    async def _after_push(self, remote: RemoteStore[R], user_id: str, pushed: list[R]) -> None:
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_phase(self, phase: SyncPhase) -> None:
        self._phase = phase
        for listener in self._listeners:
            listener.on_phase(self._entity, phase)

    def _failed(
        self, mode: SyncMode, status: SyncOutcome, error: str, pulled: int = 0
    ) -> SyncResult:
        self._set_phase(SyncPhase.ERROR)
        return SyncResult(entity=self._entity, status=status, mode=mode, pulled=pulled, error=error)


class CategorySyncCoordinator(SyncCoordinator[NoteCategory]):
    """Category variant: the set is deduplicated and pushed whole.

    The merged set is collapsed by case-insensitive name before it is stored,
    and the full set (not a delta) is pushed so the remote can drop
    categories that no longer exist locally.
    """

    def _resolve(self, merged: list[NoteCategory]) -> list[NoteCategory]:
        return remove_duplicate_categories(merged)

    def _persist(self, local_records: list[NoteCategory], resolved: list[NoteCategory]) -> int:
        before = {c.id: c for c in local_records}
        after_ids = {c.id for c in resolved}
        changed = sum(1 for c in resolved if before.get(c.id) != c)
        changed += sum(1 for category_id in before if category_id not in after_ids)
        if changed:
            self._local.replace_all(resolved)
        return changed

    def _outgoing(
        self, resolved: list[NoteCategory], watermark: str | None, pending: set[str]
    ) -> list[NoteCategory]:
        return list(resolved)

    async def _after_push(
        self, remote: RemoteStore[NoteCategory], user_id: str, pushed: list[NoteCategory]
    ) -> None:
        await remote.delete_not_present_in(user_id, {c.id for c in pushed})
