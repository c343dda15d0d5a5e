"""Flask application type used by the breakpad server."""

from flask import Flask

from breakpad_server.services.container import ServiceContainer


class BreakpadApp(Flask):
    """Flask application holding the service container built by create_app."""

    container: ServiceContainer
