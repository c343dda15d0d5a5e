"""Startup tasks run before the server accepts requests."""

import logging

from flask import Flask

from breakpad_server.services.storage_migration_service import StorageMigrationSummary

logger = logging.getLogger(__name__)


def reconcile_storage(app: Flask) -> StorageMigrationSummary:
    """Bring symbol file storage in line with FILES_IN_DATABASE.

    Must run after the schema is up to date and before serving, since the
    analyzer reads symbols from disk.
    """
    container = app.container  # type: ignore[attr-defined]

    with app.app_context():
        try:
            summary = container.storage_migration_service().run()
        finally:
            container.db_session().close()
            container.db_session.reset()

    logger.info("Symbol file storage ready")
    return summary
