"""Utility modules for the breakpad server."""

import uuid

from flask import g, has_request_context, request

CORRELATION_ID_HEADER = "X-Correlation-ID"


def get_current_correlation_id() -> str:
    """Get or generate a correlation ID for the current request.

    Inside a request the ID is taken from the X-Correlation-ID header when
    the client sent one and is then reused for the rest of the request.

    Returns:
        A unique correlation ID string
    """
    if not has_request_context():
        return str(uuid.uuid4())

    correlation_id = g.get("correlation_id")
    if correlation_id is None:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        g.correlation_id = correlation_id
    return correlation_id


# Reverse proxies whose X-Forwarded-For header is believed
TRUSTED_PROXIES = frozenset({"127.0.0.1", "::ffff:127.0.0.1"})


def get_client_ip() -> str | None:
    """Return the address of the client that sent the current request.

    X-Forwarded-For hops are followed from the right for as long as the
    address seen so far belongs to a trusted local proxy.
    """
    ip = request.remote_addr
    forwarded = request.headers.get("X-Forwarded-For", "")
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]

    while ip in TRUSTED_PROXIES and hops:
        ip = hops.pop()

    return ip
