"""Helpers for :mod:`gctracker.controllers`."""

from typing import Any, Dict, Optional, Tuple

from markupsafe import Markup
from wtforms import SelectMultipleField
from wtforms.validators import Regexp
from wtforms.widgets import CheckboxInput, ListWidget, html_params

from ..domain import Session

ResponseData = Tuple[Dict[str, Any], int, Dict[str, str]]

alphanumeric = Regexp(r'^[A-Za-z0-9]*$', message='Only letters and digits')


def strip(value: Optional[str]) -> Optional[str]:
    """Field filter that trims surrounding whitespace."""
    return value.strip() if isinstance(value, str) else value


def session_cookie(cookie: str, session: Session) -> Dict[str, Tuple[str, int]]:
    """Cookie data for a route to set, expiring with ``session``."""
    max_age = int((session.end_time - session.start_time).total_seconds())
    return {'session': (cookie, max_age)}


def unset_session_cookie() -> Dict[str, Tuple[str, int]]:
    """Cookie data for a route to clear the session cookie."""
    return {'session': ('', 0)}


class MultiCheckboxField(SelectMultipleField):
    """Multi-select with checkbox inputs."""

    widget = ListWidget(prefix_label=False)
    option_widget = CheckboxInput()

    def checkbox(self, value: str, **kwargs: Any) -> Markup:
        """Render the checkbox for a single choice, e.g. in a table row."""
        field_id = kwargs.pop('id', self.id)
        options = dict(kwargs, type='checkbox', name=self.name, value=value,
                       id='%s-%s' % (field_id, value))
        if self.data and value in self.data:
            options['checked'] = 'checked'
        return Markup(f'<input {html_params(**options)} />')
