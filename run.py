"""Server entry point.

Applies pending migrations and reconciles symbol storage before serving.
"""

import logging
import os

from waitress import serve

from breakpad_server import create_app
from breakpad_server.config import get_settings
from breakpad_server.consts import DEFAULT_BACKEND_PORT
from breakpad_server.database import upgrade_database
from breakpad_server.startup import reconcile_storage


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = get_settings()

    app = create_app(settings)

    with app.app_context():
        upgrade_database()

    reconcile_storage(app)

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", str(DEFAULT_BACKEND_PORT)))

    if settings.debug:
        app.logger.info("Running in debug mode with Flask development server")
        app.run(host=host, port=port, debug=True, use_reloader=False)
    else:
        app.logger.info("Running in production mode with Waitress")
        serve(app, host=host, port=port, threads=4)


if __name__ == "__main__":
    main()
