"""Create crash_reports and crash_report_files tables.

Revision ID: 002
Revises: 001
Create Date: 2026-10-16

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create crash report tables."""
    op.create_table(
        "crash_reports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("product", sa.String(255), nullable=True),
        sa.Column("version", sa.String(255), nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("params", sa.JSON(), nullable=False),
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
    )
    op.create_index("ix_crash_reports_created_at", "crash_reports", ["created_at"])

    # Each file field holds inline content or a path into the uploads tree
    op.create_table(
        "crash_report_files",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("crash_report_id", sa.Integer(), nullable=False),
        sa.Column("field_name", sa.String(255), nullable=False),
        sa.Column("content", sa.LargeBinary(), nullable=True),
        sa.Column("path", sa.String(512), nullable=True),
        sa.Column("size", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["crash_report_id"], ["crash_reports.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "crash_report_id", "field_name", name="uq_crash_report_files_report_field"
        ),
    )


def downgrade() -> None:
    """Drop crash report tables."""
    op.drop_table("crash_report_files")
    op.drop_index("ix_crash_reports_created_at", table_name="crash_reports")
    op.drop_table("crash_reports")
