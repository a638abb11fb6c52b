"""Notes sync endpoints.

Provides:
- ``GET  /notes``  -- All notes, or those updated after ``since``
- ``POST /notes``  -- Batch upsert keyed by note id

Without ``since`` soft-deleted notes are left out unless
``include_deleted=true``; with ``since`` tombstones are always included so
deletions propagate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from notememo.api.deps import parse_since, unavailable
from notememo.database import get_db
from notememo.remote_gateway.base import RemoteStoreUnavailable
from notememo.schemas import Note, SyncPushResponse
from notememo.services.auth_service import get_current_user_id, require_sync_enabled
from notememo.services.remote_repository import SqlNoteStore, record_device_sync
from notememo.utils.datetime_utils import get_clock
from notememo.utils.i18n import get_language
from notememo.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notes"], dependencies=[Depends(require_sync_enabled)])


@router.get("/notes", response_model=list[Note], response_model_exclude_none=True)
async def list_notes(
    request: Request,
    since: str | None = Query(default=None, description="Only notes updated strictly after this time"),
    include_deleted: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[Note]:
    """Return the user's notes, filtered by ``since`` when given."""
    since = parse_since(since)
    store = SqlNoteStore(db)
    try:
        if since is not None:
            notes = await store.read_updated_since(user_id, since)
        elif include_deleted:
            notes = await store.read_all(user_id)
        else:
            notes = await store.read_visible(user_id)
    except RemoteStoreUnavailable as exc:
        logger.error("Failed to read notes for user %s: %s", user_id, exc.message)
        raise unavailable(msg("notes.fetch_failed", get_language(request))) from None

    logger.info("Serving %d notes to user %s (since=%s)", len(notes), user_id, since)
    return notes


@router.post("/notes", response_model=SyncPushResponse, response_model_by_alias=True)
async def save_notes(
    request: Request,
    notes: list[Note],
    x_device_id: str | None = Header(default=None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], str] = Depends(get_clock),
) -> SyncPushResponse:
    """Upsert every pushed note (tombstones included) and report the server time."""
    lang = get_language(request)
    store = SqlNoteStore(db, clock=clock)
    try:
        sync_time = await store.upsert_many(user_id, notes)
        if x_device_id:
            await record_device_sync(db, user_id, x_device_id, sync_time)
    except RemoteStoreUnavailable as exc:
        logger.error("Failed to save notes for user %s: %s", user_id, exc.message)
        raise unavailable(msg("notes.save_failed", lang)) from None

    return SyncPushResponse(success=True, sync_time=sync_time, message=msg("notes.saved", lang, count=len(notes)))
