"""Local note and category CRUD.

Every edit goes straight to the device's local store and always succeeds
regardless of remote state; sync picks the changes up later. Each mutation
refreshes ``updatedAt`` to a value strictly later than the stored one, and
deleting a note leaves a tombstone so the deletion propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from notememo.constants import OTHER_CATEGORY_NAME
from notememo.local_store.adapter import LocalStoreAdapter
from notememo.schemas import Note, NoteCategory
from notememo.services.merge import remove_duplicate_categories
from notememo.utils.datetime_utils import advance_timestamp, utc_now_iso
from notememo.utils.ids import generate_id

logger = logging.getLogger(__name__)

_MAX_ID_ATTEMPTS = 10


class NoteMemoError(Exception):
    """Base class for caller mistakes in local CRUD."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NoteNotFoundError(NoteMemoError):
    def __init__(self, note_id: str) -> None:
        self.note_id = note_id
        super().__init__(f"Note {note_id} not found")


class CategoryNotFoundError(NoteMemoError):
    def __init__(self, category_id: str) -> None:
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found")


class CategoryExistsError(NoteMemoError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Category '{name}' already exists")


class ProtectedCategoryError(NoteMemoError):
    """Raised on attempts to rename or delete the "其他" category."""

    def __init__(self) -> None:
        super().__init__(f"Category '{OTHER_CATEGORY_NAME}' cannot be renamed or deleted")


def _unique_id(taken: set[str], id_factory: Callable[[], str]) -> str:
    for _ in range(_MAX_ID_ATTEMPTS):
        candidate = id_factory()
        if candidate not in taken:
            return candidate
        logger.warning("Generated id %s collides with an existing record, retrying", candidate)
    raise NoteMemoError("Could not generate a unique id")


class NoteService:
    """CRUD over the local note collection.

    Args:
        store: The device's note store.
        clock: Returns the current time in canonical ISO form.
        id_factory: Generates new note ids.
    """

    def __init__(
        self,
        store: LocalStoreAdapter[Note],
        clock: Callable[[], str] = utc_now_iso,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    def list_notes(self) -> list[Note]:
        """Visible notes, most recently updated first."""
        return sorted(self._store.read_all(), key=lambda n: n.updated_at, reverse=True)

    def get_note(self, note_id: str) -> Note:
        note = self._store.get(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    def create_note(
        self,
        title: str,
        content: str = "",
        category: str = OTHER_CATEGORY_NAME,
        tags: list[str] | None = None,
    ) -> Note:
        # Tombstoned ids stay reserved.
        taken = {n.id for n in self._store.read_all_including_tombstones()}
        now = self._clock()
        note = Note(
            id=_unique_id(taken, self._id_factory),
            title=title,
            content=content,
            category=category or OTHER_CATEGORY_NAME,
            tags=tags or [],
            created_at=now,
            updated_at=now,
        )
        self._store.upsert_many([note])
        logger.info("Created note %s", note.id)
        return note

    def update_note(
        self,
        note_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
    ) -> Note:
        existing = self.get_note(note_id)
        changes: dict[str, object] = {
            key: value
            for key, value in (("title", title), ("content", content), ("category", category), ("tags", tags))
            if value is not None
        }
        changes["updated_at"] = advance_timestamp(existing.updated_at, self._clock())
        note = existing.model_copy(update=changes)
        self._store.upsert_many([note])
        return note

    def delete_note(self, note_id: str) -> bool:
        """Soft-delete a note. Returns False if it does not exist."""
        existing = self._store.get(note_id)
        if existing is None:
            return False
        now = advance_timestamp(existing.updated_at, self._clock())
        self._store.upsert_many(
            [existing.model_copy(update={"deleted": True, "deleted_at": now, "updated_at": now})]
        )
        logger.info("Deleted note %s", note_id)
        return True

    def search_notes(self, query: str) -> list[Note]:
        """Case-insensitive match over title, content, category and tags."""
        needle = query.strip().lower()
        if not needle:
            return self.list_notes()
        return [
            note
            for note in self.list_notes()
            if needle in note.title.lower()
            or needle in note.content.lower()
            or needle in note.category.lower()
            or any(needle in tag.lower() for tag in note.tags)
        ]

    def rename_category(self, old_name: str, new_name: str) -> int:
        """Move every note in *old_name* to *new_name*. Returns the count moved."""
        now = self._clock()
        moved = [
            note.model_copy(
                update={"category": new_name, "updated_at": advance_timestamp(note.updated_at, now)}
            )
            for note in self._store.read_all()
            if note.category == old_name
        ]
        if moved:
            self._store.upsert_many(moved)
            logger.info("Moved %d notes from '%s' to '%s'", len(moved), old_name, new_name)
        return len(moved)

    def move_to_other(self, category_name: str) -> int:
        return self.rename_category(category_name, OTHER_CATEGORY_NAME)


class CategoryService:
    """CRUD over the local category collection.

    Names are unique case-insensitively, and "其他" always exists and can be
    neither renamed nor deleted.
    """

    def __init__(
        self,
        store: LocalStoreAdapter[NoteCategory],
        notes: NoteService,
        clock: Callable[[], str] = utc_now_iso,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self._store = store
        self._notes = notes
        self._clock = clock
        self._id_factory = id_factory

    def list_categories(self) -> list[NoteCategory]:
        return remove_duplicate_categories(self._store.read_all())

    def get_category(self, category_id: str) -> NoteCategory:
        category = self._store.get(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    def create_category(self, name: str, description: str | None = None) -> NoteCategory:
        categories = self._store.read_all()
        name = name.strip()
        if any(c.name_key == name.lower() for c in categories):
            raise CategoryExistsError(name)

        category = NoteCategory(
            id=_unique_id({c.id for c in categories}, self._id_factory),
            name=name,
            description=description,
            updated_at=self._clock(),
        )
        self._store.upsert_many([category])
        logger.info("Created category %s (%s)", category.id, category.name)
        return category

    def update_category(
        self,
        category_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> NoteCategory:
        existing = self.get_category(category_id)
        changes: dict[str, object] = {}

        if name is not None and name.strip() != existing.name:
            name = name.strip()
            if existing.name_key == OTHER_CATEGORY_NAME.lower():
                raise ProtectedCategoryError()
            clash = any(
                c.id != category_id and c.name_key == name.lower() for c in self._store.read_all()
            )
            if clash:
                raise CategoryExistsError(name)
            changes["name"] = name
        if description is not None:
            changes["description"] = description

        changes["updated_at"] = advance_timestamp(existing.updated_at, self._clock())
        category = existing.model_copy(update=changes)
        self._store.upsert_many([category])

        if "name" in changes:
            self._notes.rename_category(existing.name, category.name)
        return category

    def delete_category(self, category_id: str) -> None:
        """Remove a category and move its notes to "其他"."""
        existing = self.get_category(category_id)
        if existing.name_key == OTHER_CATEGORY_NAME.lower():
            raise ProtectedCategoryError()

        self._store.replace_all(c for c in self._store.read_all() if c.id != category_id)
        self._notes.move_to_other(existing.name)
        logger.info("Deleted category %s (%s)", category_id, existing.name)
