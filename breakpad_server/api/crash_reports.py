"""Crash report API endpoints.

Crash reporters POST multipart uploads here; the remaining endpoints list
reports, run the stack walker and serve uploaded files.
"""

import io
import time
from typing import Any

from dependency_injector.wiring import Provide, inject
from flask import Blueprint, Response, request, send_file, url_for
from spectree import Response as SpectreeResponse

from breakpad_server.models.crash_report import CrashReport
from breakpad_server.schemas.crash_report import (
    CrashReportCountResponseSchema,
    CrashReportListQuerySchema,
    CrashReportListResponseSchema,
    CrashReportSchema,
)
from breakpad_server.schemas.error import ErrorResponseSchema
from breakpad_server.services.container import ServiceContainer
from breakpad_server.services.crash_report_service import CrashReportService
from breakpad_server.utils import get_client_ip
from breakpad_server.utils.error_handling import handle_api_errors
from breakpad_server.utils.metrics import record_operation
from breakpad_server.utils.spectree_config import api

crash_reports_bp = Blueprint("crash_reports", __name__, url_prefix="/crashreports")


def _to_schema(report: CrashReport) -> CrashReportSchema:
    files = {
        file.field_name: url_for(
            "api.crash_reports.download_crash_report_file",
            report_id=report.id,
            field_name=file.field_name,
        )
        for file in report.files
    }
    return CrashReportSchema(
        id=report.id,
        product=report.product,
        version=report.version,
        ip=report.ip,
        params=report.params or {},
        files=files,
        created_at=report.created_at,
    )


@crash_reports_bp.route("", methods=["POST"])
@api.validate(
    resp=SpectreeResponse(
        HTTP_200=CrashReportSchema,
        HTTP_400=ErrorResponseSchema,
        HTTP_413=ErrorResponseSchema,
        HTTP_500=ErrorResponseSchema,
    )
)
@handle_api_errors
@inject
def create_crash_report(
    crash_report_service: CrashReportService = Provide[ServiceContainer.crash_report_service],
) -> Any:
    """Upload a crash report as multipart/form-data."""
    start_time = time.perf_counter()
    status = "success"

    try:
        fields = request.form.to_dict()
        files = {name: storage.stream for name, storage in request.files.items()}

        report = crash_report_service.create_report(fields, files, get_client_ip())

        return _to_schema(report).model_dump(mode="json")

    except Exception:
        status = "error"
        raise

    finally:
        duration = time.perf_counter() - start_time
        record_operation("create_crash_report", status, duration)


@crash_reports_bp.route("", methods=["GET"])
@api.validate(
    resp=SpectreeResponse(
        HTTP_200=CrashReportListResponseSchema,
        HTTP_400=ErrorResponseSchema,
    )
)
@handle_api_errors
@inject
def list_crash_reports(
    crash_report_service: CrashReportService = Provide[ServiceContainer.crash_report_service],
) -> Any:
    """List crash reports, newest first."""
    start_time = time.perf_counter()
    status = "success"

    try:
        query = CrashReportListQuerySchema.model_validate(request.args.to_dict())

        reports = crash_report_service.list_reports(limit=query.limit, offset=query.offset)

        return CrashReportListResponseSchema(
            crash_reports=[_to_schema(r) for r in reports],
            count=crash_report_service.count_reports(),
        ).model_dump(mode="json")

    except Exception:
        status = "error"
        raise

    finally:
        duration = time.perf_counter() - start_time
        record_operation("list_crash_reports", status, duration)


@crash_reports_bp.route("/count", methods=["GET"])
@api.validate(resp=SpectreeResponse(HTTP_200=CrashReportCountResponseSchema))
@handle_api_errors
@inject
def count_crash_reports(
    crash_report_service: CrashReportService = Provide[ServiceContainer.crash_report_service],
) -> Any:
    """Count crash reports whose fields match the query parameters."""
    count = crash_report_service.count_reports(request.args.to_dict())
    return CrashReportCountResponseSchema(count=count).model_dump(mode="json")


@crash_reports_bp.route("/<int:report_id>", methods=["GET"])
@api.validate(
    resp=SpectreeResponse(
        HTTP_200=CrashReportSchema,
        HTTP_404=ErrorResponseSchema,
    )
)
@handle_api_errors
@inject
def get_crash_report(
    report_id: int,
    crash_report_service: CrashReportService = Provide[ServiceContainer.crash_report_service],
) -> Any:
    """Get a crash report."""
    report = crash_report_service.get_report(report_id)
    return _to_schema(report).model_dump(mode="json")


@crash_reports_bp.route("/<int:report_id>/stackwalk", methods=["GET"])
@api.validate(
    resp=SpectreeResponse(
        HTTP_200=None,  # Plain text stack trace
        HTTP_404=ErrorResponseSchema,
        HTTP_502=ErrorResponseSchema,
    )
)
@handle_api_errors
@inject
def get_crash_report_stackwalk(
    report_id: int,
    crash_report_service: CrashReportService = Provide[ServiceContainer.crash_report_service],
) -> Any:
    """Return the minidump-stackwalk output for a crash report."""
    start_time = time.perf_counter()
    status = "success"

    try:
        report = crash_report_service.get_report(report_id)
        trace = crash_report_service.get_stack_trace(report)
        return Response(trace, mimetype="text/plain")

    except Exception:
        status = "error"
        raise

    finally:
        duration = time.perf_counter() - start_time
        record_operation("get_crash_report_stackwalk", status, duration)


@crash_reports_bp.route("/<int:report_id>/files/<field_name>", methods=["GET"])
@handle_api_errors
@inject
def download_crash_report_file(
    report_id: int,
    field_name: str,
    crash_report_service: CrashReportService = Provide[ServiceContainer.crash_report_service],
) -> Any:
    """Download an uploaded file of a crash report."""
    report = crash_report_service.get_report(report_id)
    stored = crash_report_service.get_file(report, field_name)

    if stored.path is not None:
        return send_file(
            stored.path,
            mimetype="application/octet-stream",
            as_attachment=True,
            download_name=stored.download_name,
        )

    return send_file(
        io.BytesIO(stored.data or b""),
        mimetype="application/octet-stream",
        as_attachment=True,
        download_name=stored.download_name,
    )
