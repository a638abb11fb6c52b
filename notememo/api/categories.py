"""Category sync endpoints.

Provides:
- ``GET  /categories``  -- All categories, or those updated after ``since``
- ``POST /categories``  -- Replace the user's category set

A push is the device's complete, deduplicated set: categories missing from
it are deleted and "其他" is re-created if absent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from notememo.api.deps import parse_since, unavailable
from notememo.database import get_db
from notememo.remote_gateway.base import RemoteStoreUnavailable
from notememo.schemas import NoteCategory, SyncPushResponse
from notememo.services.auth_service import get_current_user_id, require_sync_enabled
from notememo.services.remote_repository import SqlCategoryStore, record_device_sync
from notememo.utils.datetime_utils import get_clock
from notememo.utils.i18n import get_language
from notememo.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(tags=["categories"], dependencies=[Depends(require_sync_enabled)])


@router.get("/categories", response_model=list[NoteCategory], response_model_exclude_none=True)
async def list_categories(
    request: Request,
    since: str | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[NoteCategory]:
    since = parse_since(since)
    store = SqlCategoryStore(db)
    try:
        if since is not None:
            categories = await store.read_updated_since(user_id, since)
        else:
            categories = await store.read_all(user_id)
    except RemoteStoreUnavailable as exc:
        logger.error("Failed to read categories for user %s: %s", user_id, exc.message)
        raise unavailable(msg("categories.fetch_failed", get_language(request))) from None
    return categories


@router.post("/categories", response_model=SyncPushResponse, response_model_by_alias=True)
async def save_categories(
    request: Request,
    categories: list[NoteCategory],
    x_device_id: str | None = Header(default=None),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], str] = Depends(get_clock),
) -> SyncPushResponse:
    """Upsert the pushed categories, drop the ones not pushed, keep "其他"."""
    lang = get_language(request)
    store = SqlCategoryStore(db, clock=clock)
    try:
        sync_time = await store.upsert_many(user_id, categories)
        await store.delete_not_present_in(user_id, {c.id for c in categories})
        await store.ensure_other_category(user_id)
        if x_device_id:
            await record_device_sync(db, user_id, x_device_id, sync_time)
    except RemoteStoreUnavailable as exc:
        logger.error("Failed to save categories for user %s: %s", user_id, exc.message)
        raise unavailable(msg("categories.save_failed", lang)) from None

    return SyncPushResponse(
        success=True,
        sync_time=sync_time,
        message=msg("categories.saved", lang, count=len(categories)),
    )
