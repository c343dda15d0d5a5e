"""Domain-specific exceptions with user-ready messages for the breakpad server."""


class BusinessLogicException(Exception):
    """Base exception class for business logic errors.

    All business logic exceptions include user-ready messages that can be
    returned directly in API responses without client-side message construction.
    """

    def __init__(self, message: str, error_code: str) -> None:
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class RecordNotFoundException(BusinessLogicException):
    """Exception raised when a requested record or its stored content is not found."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        message = f"{resource_type} {identifier} was not found"
        super().__init__(message, error_code="RECORD_NOT_FOUND")


class ValidationException(BusinessLogicException):
    """Exception raised when validation fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message, error_code="VALIDATION_FAILED")


class StorageException(BusinessLogicException):
    """Exception raised when reading or writing persisted content fails.

    Covers both filesystem failures and database transaction failures.
    """

    def __init__(self, operation: str, cause: str) -> None:
        self.operation = operation
        self.cause = cause
        message = f"Cannot {operation} because storage failed: {cause}"
        super().__init__(message, error_code="STORAGE_ERROR")


class AnalysisException(BusinessLogicException):
    """Exception raised when the external stack-walking analyzer fails.

    ``stderr`` holds the analyzer's captured error stream (empty when the
    process could not be spawned at all).
    """

    def __init__(self, cause: str, stderr: str = "", exit_code: int | None = None) -> None:
        self.cause = cause
        self.stderr = stderr
        self.exit_code = exit_code
        message = f"Cannot analyze minidump: {cause}"
        super().__init__(message, error_code="ANALYSIS_FAILED")
