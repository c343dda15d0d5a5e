"""Crash report schemas for API request/response validation."""

from datetime import datetime

from pydantic import BaseModel, Field


class CrashReportSchema(BaseModel):
    """A crash report with its file fields rendered as download URLs."""

    id: int = Field(..., description="Crash report ID")
    product: str | None = Field(None, description="Product name (form field 'prod')")
    version: str | None = Field(None, description="Product version (form field 'ver')")
    ip: str | None = Field(None, description="Address of the uploading client")
    params: dict[str, str] = Field(default_factory=dict, description="Configured parameter fields")
    files: dict[str, str] = Field(
        default_factory=dict, description="Download URL per uploaded file field"
    )
    created_at: datetime = Field(..., description="Upload timestamp")


class CrashReportListQuerySchema(BaseModel):
    """Pagination for the crash report list."""

    limit: int = Field(10, ge=1, le=50, description="Page size")
    offset: int = Field(0, ge=0, description="Number of records to skip")


class CrashReportListResponseSchema(BaseModel):
    """Response schema for crash report list endpoint."""

    crash_reports: list[CrashReportSchema]
    count: int = Field(..., description="Total count of crash reports")


class CrashReportCountResponseSchema(BaseModel):
    """Response schema for the filtered crash report count."""

    count: int = Field(..., description="Number of matching crash reports")
