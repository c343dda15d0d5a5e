"""SymbolFile model for uploaded Breakpad symbol files."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from breakpad_server.extensions import db


class SymbolFile(db.Model):  # type: ignore[name-defined]
    """SQLAlchemy model for Breakpad symbol files.

    A symbol file is identified by the (os, name, code, arch) tuple parsed
    from its MODULE header line. The text itself always lives on disk under
    SYMBOLS_DIR/{name}/{code}/; ``contents`` carries a copy only while the
    server runs with FILES_IN_DATABASE enabled.
    """

    __tablename__ = "symbol_files"
    __table_args__ = (
        UniqueConstraint("os", "name", "code", "arch", name="uq_symbol_files_natural_key"),
        # Replaced symbol files get a fresh id even on SQLite
        {"sqlite_autoincrement": True},
    )

    # Surrogate primary key (auto-increment)
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Natural key from the MODULE line
    os: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(255), nullable=False)
    arch: Mapped[str] = mapped_column(String(255), nullable=False)

    # Full symbol text, NULL when stored on disk only
    contents: Mapped[str | None] = mapped_column(Text, nullable=True, deferred=True)

    # Standard timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of SymbolFile."""
        return (
            f"<SymbolFile(id={self.id}, os='{self.os}', name='{self.name}', "
            f"code='{self.code}', arch='{self.arch}')>"
        )
