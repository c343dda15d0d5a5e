"""Project constants."""

API_TITLE = "Breakpad Server API"
API_DESCRIPTION = "REST API for crash report and symbol file ingestion"
DEFAULT_BACKEND_PORT = 1127
