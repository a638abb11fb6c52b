"""Create users, remote notes, remote categories and sync info tables.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Apply schema migrations."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("access_code_hash", sa.String(64), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_access_code_hash", "users", ["access_code_hash"], unique=True)

    # Timestamps are canonical ISO strings so "updated_at > since" compares lexically.
    op.create_table(
        "remote_notes",
        sa.Column("pk", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("note_id", sa.Text, nullable=False),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("content", sa.Text, nullable=False, server_default=""),
        sa.Column("category", sa.Text, nullable=False, server_default=""),
        sa.Column("tags", sa.JSON, nullable=True),
        sa.Column("created_at", sa.String(32), nullable=False),
        sa.Column("updated_at", sa.String(32), nullable=False),
        sa.Column("deleted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.String(32), nullable=True),
        sa.PrimaryKeyConstraint("pk"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "note_id", name="uq_remote_notes_user_note"),
    )
    op.create_index("idx_remote_notes_user_updated", "remote_notes", ["user_id", "updated_at"])

    op.create_table(
        "remote_categories",
        sa.Column("pk", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("category_id", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("updated_at", sa.String(32), nullable=True),
        sa.PrimaryKeyConstraint("pk"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "category_id", name="uq_remote_categories_user_category"),
    )
    op.create_index(
        "idx_remote_categories_user_updated", "remote_categories", ["user_id", "updated_at"]
    )

    op.create_table(
        "sync_info",
        sa.Column("pk", sa.Integer, autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("device_id", sa.Text, nullable=False),
        sa.Column("last_sync_time", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("pk"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "device_id", name="uq_sync_info_user_device"),
    )


def downgrade() -> None:
    """Revert schema migrations."""
    op.drop_table("sync_info")
    op.drop_index("idx_remote_categories_user_updated", table_name="remote_categories")
    op.drop_table("remote_categories")
    op.drop_index("idx_remote_notes_user_updated", table_name="remote_notes")
    op.drop_table("remote_notes")
    op.drop_index("ix_users_access_code_hash", table_name="users")
    op.drop_table("users")
