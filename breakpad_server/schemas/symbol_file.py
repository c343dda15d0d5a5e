"""Symbol file schemas for API request/response validation."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SymbolFileSummarySchema(BaseModel):
    """Symbol file metadata without contents."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Symbol file ID")
    os: str = Field(..., description="Operating system from the MODULE line")
    arch: str = Field(..., description="CPU architecture from the MODULE line")
    code: str = Field(..., description="Debug identifier from the MODULE line")
    name: str = Field(..., description="Module name from the MODULE line")
    created_at: datetime = Field(..., description="Upload timestamp")


class SymbolFileDetailSchema(SymbolFileSummarySchema):
    """Symbol file including its text."""

    contents: str = Field(..., description="Full symbol file text")
    updated_at: datetime = Field(..., description="Record last update timestamp")


class SymbolFileListQuerySchema(BaseModel):
    """Pagination for the symbol file list."""

    limit: int = Field(10, ge=1, le=50, description="Page size")
    offset: int = Field(0, ge=0, description="Number of records to skip")


class SymbolFileListResponseSchema(BaseModel):
    """Response schema for symbol file list endpoint."""

    symbol_files: list[SymbolFileSummarySchema]
    count: int = Field(..., description="Total count of symbol files")
