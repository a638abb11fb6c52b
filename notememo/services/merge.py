"""Last-writer-wins merge of record sets keyed by stable id.

Rules:
1. Every local record (tombstones included) seeds the result.
2. A remote record with an unseen id is added.
3. A remote record replaces the local one only if its ``updatedAt`` is
   strictly later. Equal timestamps keep the local record, so a device's own
   edit is never clobbered by the server echoing it back.

Merge is pairwise (device ↔ server); the local-wins tie-break makes it
non-associative across more than two sources.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from notememo.constants import OTHER_CATEGORY_NAME
from notememo.local_store.seed import other_category
from notememo.schemas import NoteCategory, R
from notememo.utils.datetime_utils import is_newer
from notememo.utils.ids import generate_id


def merge_records(local: Sequence[R], remote: Sequence[R]) -> list[R]:
    """Merge *remote* into *local* and return the full resolved set.

    The output keeps local order, with remote-only records appended in
    remote order. Tombstones are part of the output.
    """
    merged: dict[str, R] = {record.id: record for record in local}
    for record in remote:
        existing = merged.get(record.id)
        if existing is None or is_newer(record.modified_at, existing.modified_at):
            merged[record.id] = record
    return list(merged.values())


def remove_duplicate_categories(categories: Iterable[NoteCategory]) -> list[NoteCategory]:
    """Collapse categories sharing a case-insensitive name.

    The last entry in input order wins for each name and sits where the name
    first appeared. The "其他" category is appended if missing.
    """
    by_name: dict[str, NoteCategory] = {}
    for category in categories:
        by_name[category.name_key] = category

    if OTHER_CATEGORY_NAME.lower() not in by_name:
        fallback = other_category()
        taken_ids = {c.id for c in by_name.values()}
        if fallback.id in taken_ids:
            fallback = fallback.model_copy(update={"id": generate_id()})
        by_name[fallback.name_key] = fallback

    return list(by_name.values())
