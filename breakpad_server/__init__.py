"""Flask application factory for the breakpad server."""

import logging

from flask_cors import CORS
from sqlalchemy.orm import Session, sessionmaker

from breakpad_server.app import BreakpadApp
from breakpad_server.config import Settings
from breakpad_server.extensions import db
from breakpad_server.services.container import ServiceContainer


def create_app(settings: Settings | None = None) -> BreakpadApp:
    """Create and configure Flask application."""
    app = BreakpadApp(__name__)

    # Load configuration
    if settings is None:
        settings = Settings.load()

    # Validate production configuration
    settings.validate_production_config()

    app.config.from_object(settings.to_flask_config())

    # The default SQLite database lives in the data directory
    for directory in (settings.data_dir, settings.symbols_dir, settings.uploads_dir):
        directory.mkdir(parents=True, exist_ok=True)

    # Initialize Flask-SQLAlchemy
    db.init_app(app)

    # Import models to register them with SQLAlchemy
    from breakpad_server import models  # noqa: F401

    # Initialize SessionLocal for per-request sessions
    # This needs to be done in app context since db.engine requires it
    with app.app_context():
        SessionLocal: sessionmaker[Session] = sessionmaker(
            class_=Session,
            bind=db.engine,
            autoflush=True,
            expire_on_commit=False,
        )

    # Initialize SpecTree for OpenAPI docs
    from breakpad_server.utils.spectree_config import configure_spectree

    configure_spectree(app)

    # Initialize service container
    container = ServiceContainer()
    container.config.override(settings)
    container.session_maker.override(SessionLocal)

    # Wire container with API modules
    wire_modules = [
        "breakpad_server.api.crash_reports",
        "breakpad_server.api.symbol_files",
    ]

    container.wire(modules=wire_modules)

    app.container = container

    # Configure CORS
    CORS(app, origins=settings.cors_origins)

    # Configure logging
    debug_mode = settings.flask_env in ("development", "testing")
    logging.basicConfig(
        level=logging.DEBUG if debug_mode else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Register main API blueprint
    from breakpad_server.api import api_bp

    app.register_blueprint(api_bp)

    # Register metrics blueprint (at root, not under /api)
    from breakpad_server.api.metrics import metrics_bp

    app.register_blueprint(metrics_bp)

    # Request teardown handler for database session management
    @app.teardown_request
    def close_session(exc: BaseException | None) -> None:
        """Commit or roll back the request session, then close it."""
        try:
            db_session = container.db_session()
            needs_rollback = db_session.info.get("needs_rollback", False)

            if exc or needs_rollback:
                db_session.rollback()
            else:
                db_session.commit()

            # Clear rollback flag after processing
            db_session.info.pop("needs_rollback", None)
            db_session.close()

        finally:
            # Ensure the scoped session is removed after each request
            container.db_session.reset()

    return app
