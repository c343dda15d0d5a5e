"""JSON body returned by handle_api_errors."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponseSchema(BaseModel):
    """Error body of a failed crash report or symbol file request."""

    error: str = Field(..., description="Human readable failure, e.g. a header parse error")
    code: str | None = Field(
        None, description="Domain error code such as RECORD_NOT_FOUND or ANALYSIS_FAILED"
    )
    details: dict[str, Any] | None = Field(
        None, description="Extra context; analyzer failures include its stderr"
    )
    correlation_id: str | None = Field(
        None, alias="correlationId", description="X-Correlation-ID of the failed request"
    )
