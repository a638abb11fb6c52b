"""Sync watermarks and the device identity token."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from notememo.constants import EntityType
from notememo.local_store.storage import LocalStorage, StorageUnavailableError
from notememo.utils.datetime_utils import normalize_iso
from notememo.utils.ids import generate_device_id

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "note-memo-device-id"
_WATERMARK_KEY = "note-memo-last-sync-{entity}-{device_id}"
_PENDING_KEY = "note-memo-pending-{entity}-{device_id}"


class WatermarkStore:
    """Per-device last successful sync time for one entity type.

    Notes and categories advance independently, so each coordinator owns a
    store with its own namespace.

    Alongside the watermark it keeps the ids of records edited while a push
    was in flight. Their ``updatedAt`` may not be later than the new
    watermark, so the next pass sends them by id.
    """

    def __init__(self, storage: LocalStorage | None, entity: EntityType) -> None:
        self._storage = storage
        self._entity = entity
        # Used when storage is disabled or failing; lost with the process.
        self._fallback: dict[str, str] = {}
        self._pending_fallback: dict[str, set[str]] = {}

    def _key(self, device_id: str) -> str:
        return _WATERMARK_KEY.format(entity=self._entity.value, device_id=device_id)

    def _pending_key(self, device_id: str) -> str:
        return _PENDING_KEY.format(entity=self._entity.value, device_id=device_id)

    def get(self, device_id: str) -> str | None:
        if self._storage is not None:
            try:
                value = self._storage.get_item(self._key(device_id))
            except StorageUnavailableError as exc:
                logger.warning("Cannot read %s watermark: %s", self._entity, exc)
            else:
                if value:
                    try:
                        return normalize_iso(value)
                    except ValueError:
                        logger.warning("Ignoring corrupt %s watermark %r", self._entity, value)
                        return None
                return None
        return self._fallback.get(device_id)

    def set(self, device_id: str, timestamp: str) -> None:
        timestamp = normalize_iso(timestamp)
        self._fallback[device_id] = timestamp
        if self._storage is None:
            return
        try:
            self._storage.set_item(self._key(device_id), timestamp)
        except StorageUnavailableError as exc:
            logger.warning("Cannot persist %s watermark: %s", self._entity, exc)

    def clear(self, device_id: str) -> None:
        """Forget the watermark so the next pass runs in full mode."""
        self._fallback.pop(device_id, None)
        self.set_pending_ids(device_id, ())
        if self._storage is None:
            return
        try:
            self._storage.remove_item(self._key(device_id))
        except StorageUnavailableError as exc:
            logger.warning("Cannot clear %s watermark: %s", self._entity, exc)

    def pending_ids(self, device_id: str) -> set[str]:
        """Ids that must go out with the next push whatever their ``updatedAt``."""
        if self._storage is not None:
            try:
                raw = self._storage.get_item(self._pending_key(device_id))
            except StorageUnavailableError as exc:
                logger.warning("Cannot read pending %s ids: %s", self._entity, exc)
            else:
                if not raw:
                    return set()
                try:
                    ids = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring corrupt pending %s ids %r", self._entity, raw)
                    return set()
                return {str(i) for i in ids} if isinstance(ids, list) else set()
        return set(self._pending_fallback.get(device_id, ()))

    def set_pending_ids(self, device_id: str, ids: Iterable[str]) -> None:
        ids = set(ids)
        self._pending_fallback[device_id] = ids
        if self._storage is None:
            return
        try:
            if ids:
                self._storage.set_item(self._pending_key(device_id), json.dumps(sorted(ids)))
            else:
                self._storage.remove_item(self._pending_key(device_id))
        except StorageUnavailableError as exc:
            logger.warning("Cannot persist pending %s ids: %s", self._entity, exc)


class DeviceIdentity:
    """Random opaque token created once per installation and never rotated."""

    def __init__(self, storage: LocalStorage | None) -> None:
        self._storage = storage
        self._device_id: str | None = None

    def get_device_id(self) -> str:
        if self._device_id is not None:
            return self._device_id

        stored: str | None = None
        if self._storage is not None:
            try:
                stored = self._storage.get_item(DEVICE_ID_KEY)
            except StorageUnavailableError as exc:
                logger.warning("Cannot read device id: %s", exc)

        if stored:
            self._device_id = stored.strip()
            return self._device_id

        self._device_id = generate_device_id()
        if self._storage is not None:
            try:
                self._storage.set_item(DEVICE_ID_KEY, self._device_id)
            except StorageUnavailableError as exc:
                logger.warning("Cannot persist device id, using an ephemeral one: %s", exc)
        logger.info("Created device id %s", self._device_id)
        return self._device_id
