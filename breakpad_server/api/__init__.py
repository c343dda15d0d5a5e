"""API blueprints for the breakpad server."""

from flask import Blueprint

# Create main API blueprint
api_bp = Blueprint("api", __name__, url_prefix="/api")


# Import and register all resource blueprints
# Note: Imports are done after api_bp creation to avoid circular imports
from breakpad_server.api.crash_reports import crash_reports_bp  # noqa: E402
from breakpad_server.api.health import health_bp  # noqa: E402
from breakpad_server.api.symbol_files import symbol_files_bp  # noqa: E402

api_bp.register_blueprint(crash_reports_bp)  # type: ignore[attr-defined]
api_bp.register_blueprint(health_bp)  # type: ignore[attr-defined]
api_bp.register_blueprint(symbol_files_bp)  # type: ignore[attr-defined]
