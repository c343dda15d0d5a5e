"""Crash report ingestion, queries and stack trace analysis."""

import itertools
import json
import logging
import os
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from breakpad_server.config import MINIDUMP_FIELD, Settings
from breakpad_server.exceptions import RecordNotFoundException
from breakpad_server.models.crash_report import CrashReport, CrashReportFile
from breakpad_server.services.analysis_cache import AnalysisCache
from breakpad_server.services.blob_store import BlobStore
from breakpad_server.services.content_location import (
    ContentKind,
    ContentLocation,
    resolve_content_location,
)
from breakpad_server.services.stackwalk_service import StackwalkService

logger = logging.getLogger(__name__)

# Form fields with a dedicated column
PRODUCT_FIELD = "prod"
VERSION_FIELD = "ver"

# Filters on columns rather than params
_COLUMN_FILTERS = ("product", "version", "ip")


@dataclass(frozen=True)
class StoredFile:
    """A crash report file ready for download.

    Exactly one of ``path`` (file on disk) and ``data`` (inline bytes) is set.
    """

    download_name: str
    path: Path | None = None
    data: bytes | None = None


class CrashReportService:
    """Service for crash report uploads and minidump analysis.

    Upload fields are stored according to FILES_IN_DATABASE at the time of
    the upload; reads accept either form regardless of the current mode.
    """

    _upload_counter = itertools.count(1)
    _upload_counter_lock = threading.Lock()

    def __init__(
        self,
        db: Session,
        config: Settings,
        blob_store: BlobStore,
        symbol_blob_store: BlobStore,
        analysis_cache: AnalysisCache,
        stackwalk_service: StackwalkService,
    ) -> None:
        """Initialize service with database session and collaborators.

        Args:
            db: SQLAlchemy database session
            config: Application settings
            blob_store: Store rooted at the uploads directory
            symbol_blob_store: Store rooted at the symbols directory, passed
                to the analyzer as its symbol path
            analysis_cache: Process-wide stack trace cache
            stackwalk_service: Runner for minidump-stackwalk
        """
        self.db = db
        self.config = config
        self.blob_store = blob_store
        self.symbol_blob_store = symbol_blob_store
        self.analysis_cache = analysis_cache
        self.stackwalk_service = stackwalk_service

    @classmethod
    def next_upload_guid(cls) -> str:
        """Return a unique directory name for one upload's files.

        Format is ``YYYY-MM-DD.HH.mm.ss.<pid>.<counter>``.
        """
        with cls._upload_counter_lock:
            counter = next(cls._upload_counter)
        timestamp = datetime.now().strftime("%Y-%m-%d.%H.%M.%S")
        return f"{timestamp}.{os.getpid()}.{counter}"

    def create_report(
        self,
        fields: Mapping[str, str],
        files: Mapping[str, BinaryIO],
        ip: str | None,
    ) -> CrashReport:
        """Create a crash report from an upload.

        ``prod`` and ``ver`` become product and version. Configured parameter
        fields are kept as-is; any other field is collected into the extra
        field as a JSON object when one is configured, and dropped otherwise.
        Files for unconfigured fields are dropped.

        Args:
            fields: Form fields of the upload
            files: Readable streams keyed by form field name
            ip: Client address

        Returns:
            The new CrashReport (flushed, committed by the request teardown)
        """
        product: str | None = None
        version: str | None = None
        params: dict[str, str] = {}
        extra: dict[str, str] = {}

        for name, value in fields.items():
            if name == PRODUCT_FIELD:
                product = value
            elif name == VERSION_FIELD:
                version = value
            elif name in self.config.param_fields and name != self.config.extra_field:
                params[name] = str(value)
            elif self.config.extra_field:
                extra[name] = str(value)

        if self.config.extra_field and extra:
            params[self.config.extra_field] = json.dumps(extra)

        report = CrashReport(product=product, version=version, ip=ip, params=params)

        upload_guid: str | None = None
        for name, stream in files.items():
            if self.config.get_file_field(name) is None:
                logger.debug("Ignoring unconfigured file field %s", name)
                continue

            if self.config.files_in_database:
                data = stream.read()
                report.files.append(CrashReportFile(field_name=name, content=data, size=len(data)))
            else:
                if upload_guid is None:
                    upload_guid = self.next_upload_guid()
                key = f"{upload_guid}/{name}"
                size = self.blob_store.write_stream(key, stream)
                report.files.append(CrashReportFile(field_name=name, path=key, size=size))

        self.db.add(report)
        self.db.flush()

        logger.info(
            "Created crash report %d (product=%s, version=%s, files=%s)",
            report.id,
            product,
            version,
            ", ".join(f.field_name for f in report.files) or "none",
        )
        return report

    def get_report(self, report_id: int) -> CrashReport:
        """Get a crash report by ID.

        Raises:
            RecordNotFoundException: If the report doesn't exist
        """
        report = self.db.get(CrashReport, report_id)
        if report is None:
            raise RecordNotFoundException("Crash report", str(report_id))
        return report

    def list_reports(self, limit: int | None = None, offset: int = 0) -> list[CrashReport]:
        """List crash reports, newest first. File contents are not loaded."""
        stmt = (
            select(CrashReport)
            .order_by(CrashReport.created_at.desc(), CrashReport.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt).all())

    def count_reports(self, filters: Mapping[str, str] | None = None) -> int:
        """Count crash reports matching all given field values.

        Filters may name product, version, ip or a configured parameter
        field. Other keys are ignored.
        """
        stmt = select(func.count()).select_from(CrashReport)

        for name, value in (filters or {}).items():
            if name in _COLUMN_FILTERS:
                stmt = stmt.where(getattr(CrashReport, name) == value)
            elif name in self.config.param_fields:
                stmt = stmt.where(CrashReport.params[name].as_string() == value)

        return self.db.scalar(stmt) or 0

    def get_file(self, report: CrashReport, field_name: str) -> StoredFile:
        """Locate a crash report file for download.

        Raises:
            RecordNotFoundException: If the field is not configured, was not
                uploaded, or its content is missing
        """
        field = self.config.get_file_field(field_name)
        if field is None:
            raise RecordNotFoundException("File field", field_name)

        content = self._locate_content(report, field_name)
        download_name = field.download_name(report.id)
        if isinstance(content, Path):
            return StoredFile(download_name=download_name, path=content)
        return StoredFile(download_name=download_name, data=content)

    def get_stack_trace(self, report: CrashReport) -> str:
        """Return the stack trace of a report's minidump.

        Served from the analysis cache when present; otherwise the analyzer
        runs against the symbols directory and a successful result is cached.

        Raises:
            RecordNotFoundException: If the report has no minidump content
            AnalysisException: If the analyzer fails
        """
        cached = self.analysis_cache.get(report.id)
        if cached is not None:
            return cached

        # A symbol upload during the analysis makes this result stale
        generation = self.analysis_cache.generation

        minidump = self._locate_content(report, MINIDUMP_FIELD)
        trace = self.stackwalk_service.analyze(minidump, [self.symbol_blob_store.root])

        self.analysis_cache.put(report.id, trace, generation=generation)
        return trace

    def _locate_content(self, report: CrashReport, field_name: str) -> bytes | Path:
        file = report.get_file(field_name)
        if file is None:
            raise RecordNotFoundException(f"File {field_name} of crash report", str(report.id))

        if file.path is None and self.config.files_in_database:
            # Content written in database mode is the file itself, however short
            location = ContentLocation.inline(file.content) if file.content else ContentLocation.absent()
        else:
            location = resolve_content_location(file.stored_value, self.config.inline_path_max_length)

        if location.kind == ContentKind.INLINE:
            assert location.data is not None
            return location.data

        if location.kind == ContentKind.PATH:
            assert location.path is not None
            path = self.blob_store.path_for(location.path)
            if path.is_file():
                return path
            logger.warning("Upload %s of crash report %d is missing at %s", field_name, report.id, path)

        raise RecordNotFoundException(f"File {field_name} of crash report", str(report.id))
