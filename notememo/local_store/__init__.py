"""Device-side persistence.

- storage: key-value backends (file, memory)
- adapter: Local Store Adapter over one record collection
- watermark: per-device sync watermarks and the device identity token
- seed: built-in notes and categories
"""

from notememo.local_store.adapter import LocalStoreAdapter
from notememo.local_store.seed import seed_categories, seed_notes
from notememo.local_store.storage import FileStorage, LocalStorage, MemoryStorage, StorageUnavailableError
from notememo.local_store.watermark import DeviceIdentity, WatermarkStore
from notememo.schemas import Note, NoteCategory

NOTES_STORAGE_KEY = "note-memo-notes"
CATEGORIES_STORAGE_KEY = "note-memo-categories"


def notes_store(storage: LocalStorage | None) -> LocalStoreAdapter[Note]:
    return LocalStoreAdapter(storage, NOTES_STORAGE_KEY, Note, seed_notes)


def categories_store(storage: LocalStorage | None) -> LocalStoreAdapter[NoteCategory]:
    return LocalStoreAdapter(storage, CATEGORIES_STORAGE_KEY, NoteCategory, seed_categories)


__all__ = [
    "CATEGORIES_STORAGE_KEY",
    "NOTES_STORAGE_KEY",
    "DeviceIdentity",
    "FileStorage",
    "LocalStorage",
    "LocalStoreAdapter",
    "MemoryStorage",
    "StorageUnavailableError",
    "WatermarkStore",
    "categories_store",
    "notes_store",
]
