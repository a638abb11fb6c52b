"""Access-code authentication for the sync API.

Every sync request carries a shared-secret access code in the
``x-access-code`` header. Codes are checked against the configured
allow-list (``ACCESS_CODES``, or the single ``ACCESS_CODE``), then mapped to a
stable per-code user id that scopes all remote collections. A user row is
created on first use; only a sha256 digest of the code is stored.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notememo.config import Settings, get_settings
from notememo.database import get_db
from notememo.models import User
from notememo.remote_gateway.base import RemoteStoreUnavailable
from notememo.utils.i18n import get_language
from notememo.utils.messages import msg

logger = logging.getLogger(__name__)


def validate_access_code(code: str, *, settings: Settings | None = None) -> bool:
    """Return True if *code* is on the configured allow-list.

    With no codes configured every code is rejected.
    """
    if settings is None:
        settings = get_settings()

    allowed = settings.access_code_list
    if not allowed:
        logger.warning("No access codes configured; rejecting sync request")
        return False
    return any(hmac.compare_digest(code, candidate) for candidate in allowed)


def hash_access_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


async def get_or_create_user_id(db: AsyncSession, access_code: str) -> str:
    """Map *access_code* to its stable user id, creating the user on first use.

    Raises:
        RemoteStoreUnavailable: If the user table cannot be read or written.
    """
    code_hash = hash_access_code(access_code)
    try:
        result = await db.execute(select(User).where(User.access_code_hash == code_hash))
        user = result.scalar_one_or_none()
        if user is not None:
            return user.id

        user = User(id=uuid.uuid4().hex, access_code_hash=code_hash)
        db.add(user)
        await db.flush()
    except SQLAlchemyError as exc:
        raise RemoteStoreUnavailable(f"User lookup failed: {exc}") from exc

    logger.info("Created sync user %s", user.id)
    return user.id


def require_sync_enabled(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """FastAPI dependency rejecting requests while sync is switched off."""
    if not settings.SYNC_ENABLED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=msg("sync.disabled", get_language(request)),
        )


async def get_current_user_id(
    request: Request,
    x_access_code: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> str:
    """FastAPI dependency resolving the access code header to a user id."""
    lang = get_language(request)
    if not x_access_code:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=msg("auth.missing_code", lang),
        )

    if not validate_access_code(x_access_code, settings=settings):
        logger.warning("Rejected invalid access code")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=msg("auth.invalid_code", lang),
        )

    try:
        return await get_or_create_user_id(db, x_access_code)
    except RemoteStoreUnavailable:
        logger.exception("User lookup failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=msg("sync.store_unavailable", lang),
        ) from None
