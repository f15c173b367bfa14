"""Provides Flask integration for the user interface."""

from typing import Dict, Optional, Tuple
from datetime import timedelta
from http import HTTPStatus as status
import logging

from flask import Blueprint, Response, current_app, make_response, \
    redirect, render_template, request, url_for

from ..auth.decorators import anonymous_only, is_authenticated, \
    login_required
from ..controllers import authentication, cases, passwords, registration
from ..services import datastore

logger = logging.getLogger(__name__)
blueprint = Blueprint('ui', __name__, url_prefix='')

COOKIE_SETTINGS = {'session': 'COOKIE_NAME'}
"""Maps cookie keys used by controllers to the config holding their name."""


def set_cookies(response: Response, data: dict) -> None:
    """
    Update a :class:`.Response` with cookies in controller data.

    Controllers seeking to update cookies must include a 'cookies' key
    in their response data.
    """
    cookies: Optional[Dict[str, Tuple[str, int]]] = data.pop('cookies', None)
    if cookies is None:
        return None
    for cookie_key, (cookie_value, expires) in cookies.items():
        cookie_name = current_app.config[COOKIE_SETTINGS[cookie_key]]
        max_age = timedelta(seconds=expires)
        logger.debug('Set cookie %s, max_age %s', cookie_name, max_age)
        params = dict(httponly=True, samesite='Lax')
        if current_app.config.get('COOKIE_SECURE'):
            params.update({'secure': True})
        response.set_cookie(cookie_name, cookie_value, max_age=max_age,
                            **params)


def _render(template: str, data: dict, code: int) -> Response:
    if 'message' in data:
        template = 'gctracker/message.html'
    response = make_response(render_template(template, **data), code)
    set_cookies(response, data)
    return response


def _redirect(data: dict, code: int, headers: dict) -> Response:
    response = make_response(redirect(headers['Location'], code=code))
    set_cookies(response, data)
    return response


def _session_cookie() -> Optional[str]:
    return request.cookies.get(current_app.config['COOKIE_NAME'], None)


@blueprint.after_request
def apply_response_headers(response: Response) -> Response:
    """Prevent UI redress attacks."""
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    response.headers['X-Frame-Options'] = 'DENY'
    return response


@blueprint.route('/', methods=['GET'], endpoint='cases')
@login_required
def cases_view() -> Response:
    """The signed-in user's tracked cases."""
    data, code, headers = cases.list_cases(request.auth.username)
    return make_response(render_template('gctracker/cases.html', **data),
                         code, headers)


@blueprint.route('/case', methods=['GET', 'POST'])
def case() -> Response:
    """Add or delete cases, then go back to the case list."""
    if request.method == 'POST' and is_authenticated():
        username = request.auth.username
        if request.form.get('add'):
            data, code, headers = cases.add_case(username, request.form,
                                                 url_for('ui.cases'))
            return _redirect(data, code, headers)
        if request.form.get('delete'):
            data, code, headers = cases.delete_cases(username, request.form,
                                                     url_for('ui.cases'))
            return _redirect(data, code, headers)
    return make_response(redirect(url_for('ui.cases'),
                                  code=status.SEE_OTHER))


@blueprint.route('/signin', methods=['GET', 'POST'])
@anonymous_only
def signin() -> Response:
    """User can sign in with username and password."""
    data, code, headers = authentication.login(
        request.method, request.form, request.remote_addr,
        url_for('ui.cases'), _session_cookie()
    )
    if code == status.SEE_OTHER:
        return _redirect(data, code, headers)
    return _render('gctracker/login.html', data, code)


@blueprint.route('/signout', methods=['GET'])
def signout() -> Response:
    """Sign out, and go to the sign-in page."""
    data, code, headers = authentication.logout(_session_cookie(),
                                                url_for('ui.signin'))
    return _redirect(data, code, headers)


@blueprint.route('/signup', methods=['GET', 'POST'])
@anonymous_only
def signup() -> Response:
    """Interface for creating new accounts."""
    data, code, headers = registration.register(request.method, request.form)
    return _render('gctracker/register.html', data, code)


@blueprint.route('/resetpwd', methods=['GET', 'POST'])
@anonymous_only
def resetpwd() -> Response:
    """Ask for a password reset link."""
    base_url = current_app.config.get('BASE_URL') or request.url_root
    data, code, headers = passwords.reset_password(request.method,
                                                   request.form, base_url)
    return _render('gctracker/reset_password.html', data, code)


@blueprint.route('/changepwd', methods=['GET', 'POST'])
def changepwd() -> Response:
    """Change password, either signed in or with a reset token."""
    session = request.auth
    template = 'gctracker/change_password.html'
    if is_authenticated():
        data, code, headers = passwords.change_password(
            request.method, request.form, session
        )
        return _render(template, data, code)

    if request.method == 'POST' and session and session.reset_token:
        ttl = int(current_app.config.get('RESET_TOKEN_TTL', 3600))
        data, code, headers = passwords.change_password(
            request.method, request.form, session, ttl
        )
        return _render(template, data, code)

    token = request.args.get('t')
    if request.method == 'GET' and token:
        data, code, headers = passwords.accept_reset_token(token, session)
        return _render(template, data, code)
    return make_response(redirect(url_for('ui.resetpwd'),
                                  code=status.SEE_OTHER))


@blueprint.route('/update', methods=['GET'])
def update() -> Response:
    """Check the status of every tracked case."""
    data, code, headers = cases.update_cases()
    body = 'OK' if code == status.OK else 'FAIL'
    return make_response(body, code, {'Content-Type': 'text/plain'})


@blueprint.route('/style.css', methods=['GET'])
def style() -> Response:
    """Serve the stylesheet."""
    response = current_app.send_static_file('gctracker/style.css')
    response.mimetype = 'text/css'
    return response


@blueprint.route('/auth_status', methods=['GET'])
def auth_status() -> Response:
    """Health check: the app is running and its database answers."""
    if not datastore.is_available():
        return make_response('Database unavailable',
                             status.SERVICE_UNAVAILABLE)
    return make_response('OK')
