from enum import StrEnum


class EntityType(StrEnum):
    NOTES = "notes"
    CATEGORIES = "categories"


class SyncMode(StrEnum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncPhase(StrEnum):
    """Steps of a single coordinator pass, in execution order."""

    IDLE = "idle"
    CHECK_IDENTITY = "check_identity"
    DETERMINE_MODE = "determine_mode"
    FETCH_REMOTE_DELTA = "fetch_remote_delta"
    MERGE = "merge"
    PERSIST_LOCAL = "persist_local"
    PUSH_LOCAL_DELTA = "push_local_delta"
    ADVANCE_WATERMARK = "advance_watermark"
    ERROR = "error"


class SyncOutcome(StrEnum):
    SYNCED = "synced"
    SKIPPED = "skipped"  # another pass already in flight
    DISABLED = "disabled"  # no identity, switched off, or auth rejected
    OFFLINE = "offline"  # remote unreachable, timed out or malformed
    ERROR = "error"


class SyncDisplayState(StrEnum):
    CHECKING = "checking"
    ENABLED = "enabled"
    DISABLED = "disabled"
    ERROR = "error"
    SYNCING = "syncing"


ACCESS_CODE_HEADER = "x-access-code"
DEVICE_ID_HEADER = "x-device-id"

OTHER_CATEGORY_NAME = "其他"
OTHER_CATEGORY_ID = "4"

# Seed timestamp shared by every installation so seeded records merge cleanly.
SEED_TIMESTAMP = "2025-01-01T00:00:00.000Z"

DEFAULT_CATEGORIES: list[dict] = [
    {"id": "1", "name": "命令行工具", "description": "常用命令行命令和工具"},
    {"id": "2", "name": "软件教程", "description": "各种软件的使用教程"},
    {"id": "3", "name": "开发技巧", "description": "编程和开发相关技巧"},
    {"id": OTHER_CATEGORY_ID, "name": OTHER_CATEGORY_NAME, "description": "其他类型的笔记"},
]
