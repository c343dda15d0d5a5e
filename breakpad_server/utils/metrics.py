"""Prometheus metrics and recording utilities for API operations.

Generic API operation metrics used across multiple endpoints.
Service-specific metrics live in their respective service modules.
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Generic API operation metrics (used by API endpoint handlers)
BREAKPAD_API_OPERATIONS_TOTAL = Counter(
    "breakpad_api_operations_total",
    "Total API operations",
    ["operation", "status"],
)
BREAKPAD_API_OPERATION_DURATION_SECONDS = Histogram(
    "breakpad_api_operation_duration_seconds",
    "Duration of API operations in seconds",
    ["operation"],
)


def record_operation(
    operation: str, status: str, duration: float | None = None
) -> None:
    """Record an API operation metric."""
    try:
        BREAKPAD_API_OPERATIONS_TOTAL.labels(
            operation=operation, status=status
        ).inc()
        if duration is not None:
            BREAKPAD_API_OPERATION_DURATION_SECONDS.labels(
                operation=operation
            ).observe(duration)
    except Exception as e:
        logger.error("Error recording operation metric: %s", e)
