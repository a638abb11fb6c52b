"""Record types synchronised between devices, plus API payload schemas.

Records travel as camelCase JSON documents (``updatedAt``, ``deletedAt``)
and are validated here, at the store boundary, instead of being trusted as
free-form dicts. Timestamps are normalised to canonical UTC form on the way
in, so ``"2024-01-01T00:00:00Z"`` becomes ``"2024-01-01T00:00:00.000Z"``.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from notememo.constants import OTHER_CATEGORY_NAME
from notememo.utils.datetime_utils import normalize_iso


class SyncRecord(BaseModel):
    """Base for every record kind keyed by a stable, client-generated id."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(min_length=1)

    @property
    def is_deleted(self) -> bool:
        return False

    @property
    def modified_at(self) -> str | None:
        return getattr(self, "updated_at", None)

    def to_wire(self) -> dict[str, Any]:
        """Serialise to the camelCase JSON document form."""
        return self.model_dump(by_alias=True, exclude_none=True)


R = TypeVar("R", bound=SyncRecord)


class Note(SyncRecord):
    """A Markdown note. Soft-deleted notes are kept as tombstones."""

    title: str = ""
    content: str = ""
    category: str = OTHER_CATEGORY_NAME
    tags: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str
    deleted: bool = False
    deleted_at: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("deleted", mode="before")
    @classmethod
    def _deleted_default(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("created_at", "updated_at", "deleted_at")
    @classmethod
    def _canonical_timestamp(cls, value: str | None) -> str | None:
        return normalize_iso(value)

    @property
    def is_deleted(self) -> bool:
        return self.deleted


class NoteCategory(SyncRecord):
    """A note category. Identity for deduplication is the lower-cased name."""

    name: str = Field(min_length=1)
    description: str | None = None
    updated_at: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("updated_at")
    @classmethod
    def _canonical_timestamp(cls, value: str | None) -> str | None:
        return normalize_iso(value)

    @property
    def name_key(self) -> str:
        return self.name.lower()


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SyncPushResponse(_CamelModel):
    """Response of ``POST /notes`` and ``POST /categories``."""

    success: bool
    sync_time: str
    message: str = ""


class SyncInfoItem(_CamelModel):
    """Last sync time reported by one device of a user."""

    device_id: str
    last_sync_time: str


class SyncStatusResponse(_CamelModel):
    """Response of ``GET /sync``."""

    enabled: bool
    user_id: str | None = None
    sync_info: list[SyncInfoItem] = Field(default_factory=list)
    message: str | None = None
