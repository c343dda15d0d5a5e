"""Service layer for the breakpad server."""
