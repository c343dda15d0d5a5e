"""Metrics API for Prometheus scraping endpoint."""

from typing import Any

from flask import Blueprint, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from breakpad_server.utils.error_handling import handle_api_errors

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("/metrics", methods=["GET"])
@handle_api_errors
def get_metrics() -> Any:
    """Return metrics in Prometheus text format.

    Returns:
        Response with metrics data in Prometheus exposition format
    """
    return Response(generate_latest(), content_type=CONTENT_TYPE_LATEST)
