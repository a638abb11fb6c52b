"""Helpers shared by the sync API routers."""

from __future__ import annotations

from fastapi import HTTPException, status

from notememo.utils.datetime_utils import normalize_iso


def parse_since(since: str | None) -> str | None:
    """Normalise the ``since`` query parameter, rejecting unparseable values with 422."""
    if since is None or not since.strip():
        return None
    try:
        return normalize_iso(since)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid 'since' timestamp: {since}",
        ) from None


def unavailable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
