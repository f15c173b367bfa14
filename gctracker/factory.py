"""Application factory for GC Tracker."""

from typing import Any, Mapping, Optional
import logging

from celery import Celery
from flask import Flask, Response, make_response, render_template
from werkzeug.exceptions import HTTPException, InternalServerError

from .auth import Auth
from .routes import ui
from .services import case_status, datastore, mail, session_store

logger = logging.getLogger(__name__)

celery_app = Celery(__name__)
celery_app.config_from_object('celeryconfig')
celery_app.autodiscover_tasks(['gctracker'], related_name='tasks', force=True)


def create_web_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Initialize and configure the GC Tracker application.

    Parameters
    ----------
    config : mapping
        Overrides for values in :mod:`gctracker.config`, applied before any
        service is initialized.

    """
    app = Flask('gctracker')
    app.config.from_pyfile('config.py')
    if config:
        app.config.update(config)

    datastore.init_app(app)
    session_store.init_app(app)
    case_status.init_app(app)
    mail.init_app(app)

    app.register_blueprint(ui.blueprint)
    Auth(app)   # Attaches the session to each request.
    register_error_handlers(app)

    if app.config['CREATE_DB']:
        with app.app_context():
            datastore.create_all()

    return app


def create_worker_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """Initialize and configure the worker application."""
    app = Flask('gctracker')
    app.config.from_pyfile('config.py')
    if config:
        app.config.update(config)

    datastore.init_app(app)
    case_status.init_app(app)
    mail.init_app(app)

    celery_app.conf.beat_schedule = {
        'update-cases': {
            'task': 'gctracker.tasks.update_cases',
            'schedule': float(app.config['UPDATE_INTERVAL']),
        }
    }
    return app


def register_error_handlers(app: Flask) -> None:
    """Render error pages for HTTP exceptions."""
    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException) -> Response:
        if isinstance(error, InternalServerError):
            logger.error('Internal error: %s', error.description)
        content = render_template('gctracker/message.html',
                                  message=error.description,
                                  error=error.name)
        return make_response(content, error.code or 500)
