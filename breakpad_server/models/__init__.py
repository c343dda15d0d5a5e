"""SQLAlchemy models for the breakpad server."""

from breakpad_server.models.crash_report import CrashReport, CrashReportFile
from breakpad_server.models.symbol_file import SymbolFile

__all__ = ["CrashReport", "CrashReportFile", "SymbolFile"]
