"""Local Store Adapter: the device's own copy of one record collection.

The adapter is the only writer of on-device records. It keeps tombstones
internally and hides them from consumer-facing reads. Its upsert applies
last-writer-wins on its own, so every entry point (initial load, local
edits, sync) gets the same idempotent merge behaviour.

Storage failures never reach the caller: reads degrade to seed data and
writes become no-ops, because the application must stay usable offline.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from typing import Generic

from pydantic import ValidationError

from notememo.local_store.storage import LocalStorage, StorageUnavailableError
from notememo.schemas import R
from notememo.utils.datetime_utils import is_newer

logger = logging.getLogger(__name__)


class LocalStoreAdapter(Generic[R]):
    """Typed view over a JSON array stored under one storage key.

    Args:
        storage: Backend to persist into, or None when persistence is disabled.
        key: Storage key holding the collection.
        record_type: Pydantic record class used to validate stored documents.
        seed: Factory returning built-in records for an empty or broken store.
    """

    def __init__(
        self,
        storage: LocalStorage | None,
        key: str,
        record_type: type[R],
        seed: Callable[[], list[R]],
    ) -> None:
        self._storage = storage
        self._key = key
        self._record_type = record_type
        self._seed = seed

    @property
    def key(self) -> str:
        return self._key

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_all(self) -> list[R]:
        """Return all non-deleted records. Order is not significant."""
        return [r for r in self._load() if not r.is_deleted]

    def read_all_including_tombstones(self) -> list[R]:
        """Return every stored record, soft-deleted ones included."""
        return self._load()

    def get(self, record_id: str, include_deleted: bool = False) -> R | None:
        for record in self._load():
            if record.id == record_id:
                if record.is_deleted and not include_deleted:
                    return None
                return record
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_many(self, records: Iterable[R]) -> int:
        """Insert or wholesale-replace records by id.

        An existing record is replaced only when the incoming ``updatedAt``
        is not older than the stored one; otherwise it is kept unchanged.

        Returns:
            Number of records whose stored value changed.
        """
        current = self._load()
        index = {r.id: i for i, r in enumerate(current)}
        changed = 0

        for record in records:
            pos = index.get(record.id)
            if pos is None:
                index[record.id] = len(current)
                current.append(record)
                changed += 1
                continue
            existing = current[pos]
            if is_newer(existing.modified_at, record.modified_at):
                continue
            if existing != record:
                current[pos] = record
                changed += 1

        if changed:
            self._save(current)
        return changed

    def replace_all(self, records: Iterable[R]) -> None:
        """Overwrite the whole collection (used for deduplicated category sets)."""
        self._save(list(records))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> list[R]:
        if self._storage is None:
            return self._seed()

        try:
            raw = self._storage.get_item(self._key)
        except StorageUnavailableError as exc:
            logger.warning("Local storage unavailable for %s, serving seed data: %s", self._key, exc)
            return self._seed()

        if raw is None:
            records = self._seed()
            self._save(records)
            return records

        try:
            documents = json.loads(raw)
        except ValueError:
            logger.warning("Corrupt local data under %s, serving seed data", self._key)
            return self._seed()
        if not isinstance(documents, list):
            logger.warning("Unexpected local data shape under %s, serving seed data", self._key)
            return self._seed()

        records: list[R] = []
        for document in documents:
            try:
                records.append(self._record_type.model_validate(document))
            except ValidationError:
                logger.warning("Skipping invalid local record under %s: %r", self._key, document)
        return records

    def _save(self, records: list[R]) -> bool:
        if self._storage is None:
            return False
        payload = json.dumps([r.to_wire() for r in records], ensure_ascii=False)
        try:
            self._storage.set_item(self._key, payload)
        except StorageUnavailableError as exc:
            logger.warning("Could not persist %s locally: %s", self._key, exc)
            return False
        return True
