"""Helpers for working with the Flask application context."""

import os
from typing import Any, Mapping, Optional

from flask import g, current_app, has_app_context


def get_application_config(app: Optional[Any] = None) -> Mapping[str, Any]:
    """
    Get a configuration from the current app, or fall back to env.

    Parameters
    ----------
    app : :class:`flask.Flask`

    Returns
    -------
    dict-like
        This is either the current Flask application configuration, or
        ``os.environ``. Either of these should support the ``get()`` method.
    """
    if app is not None:
        config: Mapping[str, Any] = app.config
        return config
    if has_app_context():
        return current_app.config
    return os.environ


def get_application_global() -> Optional[Any]:
    """
    Get the current global application context, if there is one.

    Returns
    -------
    :class:`flask.ctx._AppCtxGlobals` or None
    """
    if has_app_context():
        return g
    return None
