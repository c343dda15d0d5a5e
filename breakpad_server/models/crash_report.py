"""CrashReport models for uploaded crash reports and their file fields."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from breakpad_server.extensions import db


class CrashReport(db.Model):  # type: ignore[name-defined]
    """SQLAlchemy model for a crash report.

    Configured parameter fields are kept in the ``params`` JSON column so the
    set of accepted fields can change without a schema migration. Each file
    field submitted with the report becomes a CrashReportFile row.
    """

    __tablename__ = "crash_reports"

    # Surrogate primary key (auto-increment)
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Submitted as "prod" and "ver"
    product: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Client address of the uploader
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Configured parameter fields (name -> string value)
    params: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Standard timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    files: Mapped[list[CrashReportFile]] = relationship(
        "CrashReportFile",
        back_populates="crash_report",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def get_file(self, field_name: str) -> CrashReportFile | None:
        """Return the stored file for a field, if one was uploaded."""
        for file in self.files:
            if file.field_name == field_name:
                return file
        return None

    def __repr__(self) -> str:
        """Return string representation of CrashReport."""
        return (
            f"<CrashReport(id={self.id}, product='{self.product}', "
            f"version='{self.version}')>"
        )


class CrashReportFile(db.Model):  # type: ignore[name-defined]
    """A single file field of a crash report.

    Exactly one of ``content`` and ``path`` is normally set: ``content``
    holds the bytes when files are kept in the database, ``path`` holds the
    location relative to UPLOADS_DIR otherwise. Older databases may carry a
    short relative path inside ``content``; ContentLocation resolution
    handles that form as well.
    """

    __tablename__ = "crash_report_files"
    __table_args__ = (
        UniqueConstraint(
            "crash_report_id", "field_name", name="uq_crash_report_files_report_field"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    crash_report_id: Mapped[int] = mapped_column(
        ForeignKey("crash_reports.id", ondelete="CASCADE"), nullable=False
    )

    field_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Inline bytes; deferred so listing reports does not load dumps
    content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True, deferred=True)

    # Path relative to UPLOADS_DIR
    path: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Size of the uploaded file in bytes
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    crash_report: Mapped[CrashReport] = relationship(
        "CrashReport", back_populates="files"
    )

    @property
    def stored_value(self) -> bytes | str | None:
        """Raw stored value: the path when set, otherwise the inline content."""
        return self.path if self.path is not None else self.content

    def __repr__(self) -> str:
        """Return string representation of CrashReportFile."""
        return (
            f"<CrashReportFile(id={self.id}, crash_report_id={self.crash_report_id}, "
            f"field_name='{self.field_name}')>"
        )
