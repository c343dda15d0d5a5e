"""Centralized error handling utilities."""

import functools
import logging
from collections.abc import Callable
from typing import Any

from flask import current_app, has_app_context, jsonify
from flask.wrappers import Response
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from breakpad_server.exceptions import (
    AnalysisException,
    BusinessLogicException,
    RecordNotFoundException,
    StorageException,
    ValidationException,
)
from breakpad_server.utils import get_current_correlation_id

logger = logging.getLogger(__name__)


def _mark_request_failed() -> None:
    """Make the request teardown roll back the session instead of committing."""
    if not has_app_context():
        return
    container = getattr(current_app, "container", None)
    if container is not None:
        container.db_session().info["needs_rollback"] = True


def _build_error_response(
    error: str,
    details: dict[str, Any],
    code: str | None = None,
    status_code: int = 400,
) -> tuple[Response, int]:
    """Build error response with correlation ID and optional error code."""
    response_data: dict[str, Any] = {
        "error": error,
        "details": details,
    }

    if code:
        response_data["code"] = code

    correlation_id = get_current_correlation_id()
    if correlation_id:
        response_data["correlationId"] = correlation_id

    return jsonify(response_data), status_code


def handle_api_errors(
    func: Callable[..., Any],
) -> Callable[..., Response | tuple[Response | str, int]]:
    """Decorator to handle common API errors consistently.

    Handles ValidationError, domain exceptions, HTTP errors raised by
    werkzeug (such as an oversized upload) and generic exceptions with
    appropriate HTTP status codes and error messages.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            _mark_request_failed()

            if isinstance(e, (ValidationError, ValidationException, RecordNotFoundException, HTTPException)):
                logger.warning("Request failed in %s: %s", func.__name__, str(e))
            else:
                logger.error("Exception in %s: %s", func.__name__, str(e), exc_info=True)

            try:
                raise
            except ValidationError as e:
                # Pydantic validation errors
                error_details = []
                for error in e.errors():
                    field = ".".join(str(x) for x in error["loc"])
                    message = error["msg"]
                    error_details.append({"message": message, "field": field})

                return _build_error_response(
                    "Validation failed", {"errors": error_details}, status_code=400
                )

            except RecordNotFoundException as e:
                return _build_error_response(
                    e.message,
                    {"message": "The requested resource could not be found"},
                    code=e.error_code,
                    status_code=404,
                )

            except ValidationException as e:
                return _build_error_response(
                    e.message,
                    {"message": "Validation failed"},
                    code=e.error_code,
                    status_code=400,
                )

            except AnalysisException as e:
                # The analyzer is an external process (HTTP 502 Bad Gateway)
                return _build_error_response(
                    e.message,
                    {"message": "Minidump analysis failed", "stderr": e.stderr},
                    code=e.error_code,
                    status_code=502,
                )

            except StorageException as e:
                return _build_error_response(
                    e.message,
                    {"message": "Storage operation failed"},
                    code=e.error_code,
                    status_code=500,
                )

            except BusinessLogicException as e:
                # Generic business logic exception (fallback for custom exceptions)
                return _build_error_response(
                    e.message,
                    {"message": "A business logic operation failed"},
                    code=e.error_code,
                    status_code=400,
                )

            except HTTPException as e:
                # e.g. RequestEntityTooLarge when MAX_CONTENT_LENGTH is exceeded
                return _build_error_response(
                    e.name,
                    {"message": e.description or e.name},
                    status_code=e.code or 500,
                )

            except Exception as e:
                return _build_error_response(
                    "Internal server error", {"message": str(e)}, status_code=500
                )

    return wrapper
