"""Web Server Gateway Interface entry-point."""

import os

from gctracker import config
from gctracker.app_logging import setup_logger
from gctracker.factory import create_web_app

__flask_app__ = None


def application(environ, start_response):    # type: ignore
    """WSGI application."""
    for key, value in environ.items():
        # The server may pass its own hostname; keep ``BASE_URL`` as
        # configured.
        if key == 'SERVER_NAME':
            continue
        if key.isupper() and isinstance(value, str):
            os.environ[key] = value

    global __flask_app__
    if __flask_app__ is None:
        __flask_app__ = create_app()
    return __flask_app__(environ, start_response)


def create_app():    # type: ignore
    """Check the configuration, then build the application."""
    app = create_web_app()
    errors = config.validate(app.config)
    if errors:
        raise RuntimeError('Invalid configuration: ' + '; '.join(errors))
    setup_logger(app.config['LOGLEVEL'])
    return app
