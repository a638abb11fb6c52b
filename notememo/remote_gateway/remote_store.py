"""Remote Store Adapter backed by the NoteMemo REST API.

The server scopes every collection by the user behind the access code, so
the ``user_id`` argument of :class:`RemoteStore` is never sent on the wire.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from notememo.constants import EntityType
from notememo.remote_gateway.base import MalformedResponseError, RemoteStore
from notememo.remote_gateway.client import NoteMemoClient
from notememo.schemas import Note, NoteCategory, R, SyncPushResponse

logger = logging.getLogger(__name__)

_RECORD_TYPES: dict[EntityType, type] = {
    EntityType.NOTES: Note,
    EntityType.CATEGORIES: NoteCategory,
}


class HttpRemoteStore(RemoteStore[R]):
    """REST-backed remote collection for one entity type.

    Args:
        client: An open :class:`NoteMemoClient`; its lifecycle stays with the caller.
        entity: Which collection (``notes`` or ``categories``) this store wraps.
    """

    def __init__(self, client: NoteMemoClient, entity: EntityType) -> None:
        self._client = client
        self._entity = entity
        self._record_type: type[R] = _RECORD_TYPES[entity]
        self._path = f"/api/{entity.value}"

    @property
    def entity(self) -> EntityType:
        return self._entity

    async def read_all(self, user_id: str) -> list[R]:
        # Full note fetches must see tombstones so deletions reach devices without a watermark.
        # Categories are hard-deleted and have no tombstones to ask for.
        params = {"include_deleted": "true"} if self._entity is EntityType.NOTES else None
        payload = await self._client.get_json(self._path, params=params)
        return self._parse_records(payload)

    async def read_updated_since(self, user_id: str, timestamp: str) -> list[R]:
        payload = await self._client.get_json(self._path, params={"since": timestamp})
        return self._parse_records(payload)

    async def upsert_many(self, user_id: str, records: Sequence[R]) -> str:
        payload = await self._client.post_json(self._path, [r.to_wire() for r in records])
        try:
            response = SyncPushResponse.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(f"Invalid push response from {self._path}") from exc
        if not response.success:
            raise MalformedResponseError(f"Push to {self._path} not confirmed: {response.message}")
        logger.info("Pushed %d %s, server sync time %s", len(records), self._entity, response.sync_time)
        return response.sync_time

    def _parse_records(self, payload: Any) -> list[R]:
        if not isinstance(payload, list):
            raise MalformedResponseError(f"Expected a JSON array from {self._path}")
        try:
            return [self._record_type.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise MalformedResponseError(f"Invalid record from {self._path}: {exc}") from exc
