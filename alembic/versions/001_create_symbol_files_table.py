"""Create symbol_files table for uploaded Breakpad symbol files.

Revision ID: 001
Revises:
Create Date: 2026-10-16

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create symbol_files table keyed by (os, name, code, arch)."""
    op.create_table(
        "symbol_files",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("os", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(255), nullable=False),
        sa.Column("arch", sa.String(255), nullable=False),
        sa.Column("contents", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "os", "name", "code", "arch", name="uq_symbol_files_natural_key"
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_symbol_files_created_at", "symbol_files", ["created_at"])


def downgrade() -> None:
    """Drop symbol_files table."""
    op.drop_index("ix_symbol_files_created_at", table_name="symbol_files")
    op.drop_table("symbol_files")
