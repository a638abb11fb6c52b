"""Remote store repositories backed by SQLAlchemy.

These implement :class:`RemoteStore` directly over an ``AsyncSession`` and
back the REST API. Timestamps are stored in canonical ISO form, so the
strictly-greater ``since`` filter is a plain string comparison.

The caller owns the session and its transaction boundaries; repositories
only ``flush``. Every SQLAlchemy failure surfaces as
:class:`RemoteStoreUnavailable`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notememo.constants import OTHER_CATEGORY_NAME
from notememo.local_store.seed import other_category
from notememo.models import RemoteCategory, RemoteNote, SyncInfo
from notememo.remote_gateway.base import RemoteStore, RemoteStoreUnavailable
from notememo.schemas import Note, NoteCategory, SyncInfoItem
from notememo.utils.datetime_utils import normalize_iso, utc_now_iso
from notememo.utils.ids import generate_id

logger = logging.getLogger(__name__)

# Upper bound on ids per IN (...) clause.
_CHUNK_SIZE = 500


def _chunks(items: Sequence[str]) -> list[Sequence[str]]:
    return [items[i : i + _CHUNK_SIZE] for i in range(0, len(items), _CHUNK_SIZE)]


class SqlNoteStore(RemoteStore[Note]):
    """Per-user note collection in the ``remote_notes`` table.

    Args:
        db: An SQLAlchemy async session (caller manages commit/rollback).
        clock: Returns the server time reported as ``syncTime``.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], str] = utc_now_iso) -> None:
        self._db = db
        self._clock = clock

    async def read_all(self, user_id: str) -> list[Note]:
        return await self._select(user_id)

    async def read_visible(self, user_id: str) -> list[Note]:
        """Non-deleted notes only, for consumers that are not syncing."""
        return await self._select(user_id, RemoteNote.deleted.is_(False))

    async def read_updated_since(self, user_id: str, timestamp: str) -> list[Note]:
        return await self._select(user_id, RemoteNote.updated_at > normalize_iso(timestamp))

    async def upsert_many(self, user_id: str, records: Sequence[Note]) -> str:
        sync_time = self._clock()
        try:
            existing: dict[str, RemoteNote] = {}
            for chunk in _chunks([r.id for r in records]):
                result = await self._db.execute(
                    select(RemoteNote).where(RemoteNote.user_id == user_id, RemoteNote.note_id.in_(chunk))
                )
                existing.update({row.note_id: row for row in result.scalars().all()})

            for note in records:
                row = existing.get(note.id)
                if row is None:
                    row = RemoteNote(user_id=user_id, note_id=note.id)
                    self._db.add(row)
                    existing[note.id] = row
                row.title = note.title
                row.content = note.content
                row.category = note.category
                row.tags = list(note.tags)
                row.created_at = note.created_at
                row.updated_at = note.updated_at
                row.deleted = note.deleted
                row.deleted_at = note.deleted_at

            await self._db.flush()
        except SQLAlchemyError as exc:
            logger.warning("Failed to upsert %d notes for user %s: %s", len(records), user_id, exc)
            raise RemoteStoreUnavailable(f"Note upsert failed: {exc}") from exc

        logger.info("Upserted %d notes for user %s", len(records), user_id)
        return sync_time

    async def _select(self, user_id: str, *criteria: Any) -> list[Note]:
        stmt = select(RemoteNote).where(RemoteNote.user_id == user_id, *criteria).order_by(RemoteNote.pk)
        try:
            result = await self._db.execute(stmt)
            rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise RemoteStoreUnavailable(f"Note query failed: {exc}") from exc
        return [_note_from_row(row) for row in rows]


class SqlCategoryStore(RemoteStore[NoteCategory]):
    """Per-user category collection in the ``remote_categories`` table.

    Categories pushed without ``updatedAt`` are stamped with the server time.
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], str] = utc_now_iso) -> None:
        self._db = db
        self._clock = clock

    async def read_all(self, user_id: str) -> list[NoteCategory]:
        return await self._select(user_id)

    async def read_updated_since(self, user_id: str, timestamp: str) -> list[NoteCategory]:
        return await self._select(
            user_id,
            RemoteCategory.updated_at.is_not(None),
            RemoteCategory.updated_at > normalize_iso(timestamp),
        )

    async def upsert_many(self, user_id: str, records: Sequence[NoteCategory]) -> str:
        sync_time = self._clock()
        try:
            existing: dict[str, RemoteCategory] = {}
            for chunk in _chunks([r.id for r in records]):
                result = await self._db.execute(
                    select(RemoteCategory).where(
                        RemoteCategory.user_id == user_id, RemoteCategory.category_id.in_(chunk)
                    )
                )
                existing.update({row.category_id: row for row in result.scalars().all()})

            for category in records:
                row = existing.get(category.id)
                if row is None:
                    row = RemoteCategory(user_id=user_id, category_id=category.id)
                    self._db.add(row)
                    existing[category.id] = row
                row.name = category.name
                row.description = category.description
                row.updated_at = category.updated_at or sync_time

            await self._db.flush()
        except SQLAlchemyError as exc:
            logger.warning("Failed to upsert %d categories for user %s: %s", len(records), user_id, exc)
            raise RemoteStoreUnavailable(f"Category upsert failed: {exc}") from exc

        logger.info("Upserted %d categories for user %s", len(records), user_id)
        return sync_time

    async def delete_not_present_in(self, user_id: str, ids_to_keep: set[str]) -> int:
        stmt = delete(RemoteCategory).where(RemoteCategory.user_id == user_id)
        if ids_to_keep:
            stmt = stmt.where(RemoteCategory.category_id.not_in(list(ids_to_keep)))
        try:
            result = await self._db.execute(stmt)
            await self._db.flush()
        except SQLAlchemyError as exc:
            raise RemoteStoreUnavailable(f"Category purge failed: {exc}") from exc
        removed = result.rowcount or 0
        if removed:
            logger.info("Removed %d stale categories for user %s", removed, user_id)
        return removed

    async def ensure_other_category(self, user_id: str) -> None:
        """Re-create the "其他" category if the user's set lacks it."""
        try:
            result = await self._db.execute(
                select(RemoteCategory).where(
                    RemoteCategory.user_id == user_id,
                    func.lower(RemoteCategory.name) == OTHER_CATEGORY_NAME.lower(),
                )
            )
            if result.scalars().first() is not None:
                return

            fallback = other_category()
            taken = await self._db.execute(
                select(RemoteCategory.pk).where(
                    RemoteCategory.user_id == user_id, RemoteCategory.category_id == fallback.id
                )
            )
            category_id = generate_id() if taken.first() is not None else fallback.id
            self._db.add(
                RemoteCategory(
                    user_id=user_id,
                    category_id=category_id,
                    name=fallback.name,
                    description=fallback.description,
                    updated_at=self._clock(),
                )
            )
            await self._db.flush()
        except SQLAlchemyError as exc:
            raise RemoteStoreUnavailable(f"Category query failed: {exc}") from exc
        logger.info("Restored '%s' category for user %s", OTHER_CATEGORY_NAME, user_id)

    async def _select(self, user_id: str, *criteria: Any) -> list[NoteCategory]:
        stmt = (
            select(RemoteCategory)
            .where(RemoteCategory.user_id == user_id, *criteria)
            .order_by(RemoteCategory.pk)
        )
        try:
            result = await self._db.execute(stmt)
            rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise RemoteStoreUnavailable(f"Category query failed: {exc}") from exc
        return [
            NoteCategory(
                id=row.category_id,
                name=row.name,
                description=row.description,
                updated_at=row.updated_at,
            )
            for row in rows
        ]


# ---------------------------------------------------------------------------
# Device sync bookkeeping
# ---------------------------------------------------------------------------


async def record_device_sync(db: AsyncSession, user_id: str, device_id: str, sync_time: str) -> None:
    """Upsert the ``sync_info`` row of *device_id*."""
    try:
        result = await db.execute(
            select(SyncInfo).where(SyncInfo.user_id == user_id, SyncInfo.device_id == device_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            db.add(SyncInfo(user_id=user_id, device_id=device_id, last_sync_time=sync_time))
        else:
            row.last_sync_time = sync_time
        await db.flush()
    except SQLAlchemyError as exc:
        raise RemoteStoreUnavailable(f"Sync info update failed: {exc}") from exc


async def list_device_syncs(db: AsyncSession, user_id: str) -> list[SyncInfoItem]:
    """All devices of *user_id* with their last sync time, most recent first."""
    try:
        result = await db.execute(
            select(SyncInfo).where(SyncInfo.user_id == user_id).order_by(SyncInfo.last_sync_time.desc())
        )
        rows = result.scalars().all()
    except SQLAlchemyError as exc:
        raise RemoteStoreUnavailable(f"Sync info query failed: {exc}") from exc
    return [SyncInfoItem(device_id=row.device_id, last_sync_time=row.last_sync_time) for row in rows]


def _note_from_row(row: RemoteNote) -> Note:
    return Note(
        id=row.note_id,
        title=row.title,
        content=row.content,
        category=row.category,
        tags=row.tags or [],
        created_at=row.created_at,
        updated_at=row.updated_at,
        deleted=bool(row.deleted),
        deleted_at=row.deleted_at,
    )
