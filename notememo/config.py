"""Application settings for the NoteMemo server and device client."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """NoteMemo settings.

    All values are loaded from environment variables.
    A .env file in the working directory is also supported.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Database (remote store) ---
    DATABASE_URL: str = "postgresql+asyncpg://notememo:notememo@db:5432/notememo"

    # --- Sync server ---
    SYNC_ENABLED: bool = False
    ACCESS_CODES: str = ""  # comma separated allow-list
    ACCESS_CODE: str = ""  # single-code fallback

    # --- Device client ---
    SYNC_SERVER_URL: str = "http://localhost:8000"
    SYNC_FETCH_TIMEOUT: float = 5.0
    SYNC_INTERVAL_SECONDS: int = 300
    LOCAL_DATA_DIR: str = str(Path.home() / ".notememo")

    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses the asyncpg driver."""
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def access_code_list(self) -> list[str]:
        """Configured access codes, multi-code list first."""
        if self.ACCESS_CODES.strip():
            return [code.strip() for code in self.ACCESS_CODES.split(",") if code.strip()]
        if self.ACCESS_CODE.strip():
            return [self.ACCESS_CODE.strip()]
        return []


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings singleton."""
    return Settings()


@dataclass(frozen=True)
class SyncConfig:
    """Options recognised by a sync coordinator.

    Attributes:
        sync_enabled: Master switch; a disabled config makes every pass a no-op.
        user_identity: Logical account id scoping the remote collections.
            Passes abort while it is unknown.
    """

    sync_enabled: bool = False
    user_identity: str | None = None
