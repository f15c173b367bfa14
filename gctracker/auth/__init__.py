"""Attaches the caller's session to each request."""

from typing import Optional
import logging

from flask import Flask, Response, request

from ..domain import Session
from ..services import session_store
from ..services.exceptions import InvalidToken, UnknownSession
from . import decorators

logger = logging.getLogger(__name__)


class Auth(object):
    """
    Flask extension that resolves the session cookie on every request.

    Set it up in the application factory:

    .. code-block:: python

       from flask import Flask
       from gctracker.auth import Auth
       from gctracker.routes import ui


       def create_web_app() -> Flask:
          app = Flask('gctracker')
          app.config.from_pyfile('config.py')
          Auth(app)   # Registers the before_request session lookup.
          app.register_blueprint(ui.blueprint)
          return app

    After that, ``request.auth`` is the :class:`.Session` for the request, or
    ``None``. A session is not necessarily authenticated; see
    :attr:`.Session.is_authenticated`.
    """

    def __init__(self, app: Optional[Flask] = None) -> None:
        """
        Initialize ``app`` with `Auth`.

        Parameters
        ----------
        app : :class:`Flask`

        """
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Attach :meth:`.load_session` to the Flask app."""
        self.app = app
        app.config['gctracker.Auth'] = self
        app.config.setdefault('COOKIE_NAME', 'sessionid')
        session_store.init_app(app)
        self.app.before_request(self.load_session)

    def load_session(self) -> Optional[Response]:
        """Look for an active session, and attach it to the request."""
        cookie = request.cookies.get(self.app.config['COOKIE_NAME'])
        request.auth = self._get_session(cookie)
        return None

    def _get_session(self, cookie: Optional[str]) -> Optional[Session]:
        if not cookie:
            return None
        try:
            return session_store.load(cookie)
        except UnknownSession as e:
            logger.debug('No session available: %s', e)
        except InvalidToken as e:
            logger.debug('Invalid session cookie: %s', e)
        return None
