"""Sync status endpoint.

``GET /sync`` tells a device whether the server has sync switched on, which
user its access code maps to, and when each of that user's devices last
pushed. It is diagnostic only and plays no part in merging.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from notememo.api.deps import unavailable
from notememo.config import Settings, get_settings
from notememo.constants import ACCESS_CODE_HEADER
from notememo.database import get_db
from notememo.remote_gateway.base import RemoteStoreUnavailable
from notememo.schemas import SyncStatusResponse
from notememo.services.auth_service import get_current_user_id
from notememo.services.remote_repository import list_device_syncs
from notememo.utils.i18n import get_language
from notememo.utils.messages import msg

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("", response_model=SyncStatusResponse, response_model_by_alias=True)
async def get_sync_status(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> SyncStatusResponse:
    """Report the sync switch and, when on, the caller's identity and devices."""
    lang = get_language(request)
    if not settings.SYNC_ENABLED:
        return SyncStatusResponse(enabled=False, message=msg("sync.disabled", lang))

    # Auth runs only when sync is on; a disabled server answers without a code.
    user_id = await get_current_user_id(
        request,
        x_access_code=request.headers.get(ACCESS_CODE_HEADER),
        db=db,
        settings=settings,
    )
    try:
        devices = await list_device_syncs(db, user_id)
    except RemoteStoreUnavailable as exc:
        logger.error("Failed to read sync info for user %s: %s", user_id, exc.message)
        raise unavailable(msg("sync.store_unavailable", lang)) from None

    return SyncStatusResponse(
        enabled=True,
        user_id=user_id,
        sync_info=devices,
        message=msg("sync.enabled", lang),
    )
