"""Remote store schema.

Every user gets one logical collection per entity type, expressed as a
``user_id`` column. Records are addressed by their stable client id
(``note_id`` / ``category_id``); the integer ``pk`` is storage-internal and
never leaves the server.
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from notememo.database import Base


class User(Base):
    """A sync account, created on first use of an access code."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    access_code_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class RemoteNote(Base):
    """Canonical multi-device copy of a note, tombstones included."""

    __tablename__ = "remote_notes"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id", ondelete="CASCADE"))
    note_id: Mapped[str] = mapped_column(Text)
    title: Mapped[str] = mapped_column(Text, default="")
    content: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[str] = mapped_column(String(32))
    updated_at: Mapped[str] = mapped_column(String(32))  # canonical ISO, client clock
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "note_id", name="uq_remote_notes_user_note"),
        Index("idx_remote_notes_user_updated", "user_id", "updated_at"),
    )


class RemoteCategory(Base):
    """Canonical multi-device copy of a category."""

    __tablename__ = "remote_categories"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id", ondelete="CASCADE"))
    category_id: Mapped[str] = mapped_column(Text)
    name: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_remote_categories_user_category"),
        Index("idx_remote_categories_user_updated", "user_id", "updated_at"),
    )


class SyncInfo(Base):
    """Last confirmed sync time of one device, for diagnostics only."""

    __tablename__ = "sync_info"

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id", ondelete="CASCADE"))
    device_id: Mapped[str] = mapped_column(Text)
    last_sync_time: Mapped[str] = mapped_column(String(32))

    __table_args__ = (UniqueConstraint("user_id", "device_id", name="uq_sync_info_user_device"),)
