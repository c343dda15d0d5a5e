"""Symbol file API endpoints."""

import time
from typing import Any

from dependency_injector.wiring import Provide, inject
from flask import Blueprint, Response, request, send_file
from spectree import Response as SpectreeResponse

from breakpad_server.exceptions import ValidationException
from breakpad_server.schemas.error import ErrorResponseSchema
from breakpad_server.schemas.symbol_file import (
    SymbolFileDetailSchema,
    SymbolFileListQuerySchema,
    SymbolFileListResponseSchema,
    SymbolFileSummarySchema,
)
from breakpad_server.services.container import ServiceContainer
from breakpad_server.services.symbol_service import SymbolService
from breakpad_server.utils.error_handling import handle_api_errors
from breakpad_server.utils.metrics import record_operation
from breakpad_server.utils.spectree_config import api

symbol_files_bp = Blueprint("symbol_files", __name__, url_prefix="/symfiles")

# Multipart field carrying the symbol file
SYMFILE_FIELD = "symfile"


@symbol_files_bp.route("", methods=["POST"])
@api.validate(
    resp=SpectreeResponse(
        HTTP_200=SymbolFileSummarySchema,
        HTTP_400=ErrorResponseSchema,
        HTTP_500=ErrorResponseSchema,
    )
)
@handle_api_errors
@inject
def upload_symbol_file(
    symbol_service: SymbolService = Provide[ServiceContainer.symbol_service],
) -> Any:
    """Upload a Breakpad symbol file as multipart field 'symfile'.

    A file with the same os, arch, code and name replaces the previous one.
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        upload = request.files.get(SYMFILE_FIELD)
        if upload is None:
            raise ValidationException(f'Form must include a "{SYMFILE_FIELD}" field')

        symbol_file = symbol_service.ingest(upload.read())
        return SymbolFileSummarySchema.model_validate(symbol_file).model_dump(mode="json")

    except Exception:
        status = "error"
        raise

    finally:
        duration = time.perf_counter() - start_time
        record_operation("upload_symbol_file", status, duration)


@symbol_files_bp.route("", methods=["GET"])
@api.validate(
    resp=SpectreeResponse(
        HTTP_200=SymbolFileListResponseSchema,
        HTTP_400=ErrorResponseSchema,
    )
)
@handle_api_errors
@inject
def list_symbol_files(
    symbol_service: SymbolService = Provide[ServiceContainer.symbol_service],
) -> Any:
    """List symbol files, newest first."""
    query = SymbolFileListQuerySchema.model_validate(request.args.to_dict())

    symbol_files = symbol_service.list_symbol_files(limit=query.limit, offset=query.offset)

    return SymbolFileListResponseSchema(
        symbol_files=[SymbolFileSummarySchema.model_validate(s) for s in symbol_files],
        count=symbol_service.count_symbol_files(),
    ).model_dump(mode="json")


# Not wrapped in api.validate: the raw form returns text, not JSON
@symbol_files_bp.route("/<int:symbol_file_id>", methods=["GET"])
@handle_api_errors
@inject
def get_symbol_file(
    symbol_file_id: int,
    symbol_service: SymbolService = Provide[ServiceContainer.symbol_service],
) -> Any:
    """Get a symbol file with its contents.

    With the ``raw`` query parameter the symbol text is returned as
    text/plain instead.
    """
    symbol_file = symbol_service.get_symbol_file(symbol_file_id)

    if "raw" in request.args:
        if symbol_file.contents is not None:
            return Response(symbol_file.contents, mimetype="text/plain")
        return send_file(
            symbol_service.open_disk_contents(symbol_file),
            mimetype="text/plain",
        )

    summary = SymbolFileSummarySchema.model_validate(symbol_file)
    return SymbolFileDetailSchema(
        **summary.model_dump(),
        contents=symbol_service.get_contents(symbol_file),
        updated_at=symbol_file.updated_at,
    ).model_dump(mode="json")
