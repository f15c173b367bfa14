"""
Controllers for a user's list of tracked cases.

Adding and deleting cases always ends in a redirect to the case list; input
that does not validate is logged and otherwise ignored.
"""

from typing import Any, Dict, List
from http import HTTPStatus as status
import logging

from werkzeug.datastructures import MultiDict
from wtforms import Form, StringField
from wtforms.validators import DataRequired, Length

from retry import retry

from ..domain import Case, SyncResult
from ..process import sync
from ..services import case_status, datastore
from ..services.exceptions import DatastoreUnavailable, StatusUnavailable
from .util import MultiCheckboxField, ResponseData, alphanumeric, strip

logger = logging.getLogger(__name__)


def upper(value: Any) -> Any:
    """Receipt numbers are upper case."""
    return value.upper() if isinstance(value, str) else value


class CaseForm(Form):
    """Add a case to track."""

    case_id = StringField(
        'ID',
        validators=[DataRequired(), Length(min=13, max=13), alphanumeric],
        filters=[strip, upper]
    )
    name = StringField('Description', validators=[Length(max=40)],
                       filters=[strip])


class DeleteCasesForm(Form):
    """Select cases to stop tracking."""

    cases = MultiCheckboxField('Cases', choices=[])

    @classmethod
    def for_cases(cls, cases: List[Case], *args: Any) -> 'DeleteCasesForm':
        """Offer ``cases`` as the choices."""
        form = cls(*args)
        form.cases.choices = [(case.case_id, case.name) for case in cases]
        return form


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _get_cases(username: str) -> List[Case]:
    return datastore.get_cases(username)


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _case_exists(case_id: str) -> bool:
    return datastore.case_exists(case_id)


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _track_case(username: str, case_id: str, name: str,
                initial: str) -> Case:
    return datastore.track_case(username, case_id, name, initial)


@retry(DatastoreUnavailable, tries=3, delay=0.5, backoff=2)
def _untrack_cases(username: str, case_ids: List[str]) -> List[str]:
    return datastore.untrack_cases(username, case_ids)


def list_cases(username: str) -> ResponseData:
    """Show the cases tracked by a user, sorted by ID."""
    cases = _get_cases(username)
    data = {
        'username': username,
        'cases': cases,
        'form': CaseForm(),
        'delete_form': DeleteCasesForm.for_cases(cases)
    }
    return data, status.OK, {}


def add_case(username: str, form_data: MultiDict,
             next_page: str = '/') -> ResponseData:
    """
    Start tracking a case.

    The status of a case that nobody tracked before is fetched right away; if
    that fails, the case is added anyway and picks up its status on the next
    sync.
    """
    form = CaseForm(form_data)
    if not form.validate():
        logger.info('Not adding case for %s: %s', username, form.errors)
        return {}, status.SEE_OTHER, {'Location': next_page}

    case_id = form.case_id.data
    initial = ''
    if not _case_exists(case_id):
        try:
            initial = case_status.check_status(case_id)
        except StatusUnavailable as e:
            logger.warning('Could not get status of %s: %s', case_id, e)
    _track_case(username, case_id, form.name.data or '', initial)
    logger.info('Add case %s for %s', case_id, username)
    return {}, status.SEE_OTHER, {'Location': next_page}


def delete_cases(username: str, form_data: MultiDict,
                 next_page: str = '/') -> ResponseData:
    """Stop tracking the selected cases."""
    form = DeleteCasesForm.for_cases(_get_cases(username), form_data)
    if not form.validate():
        logger.info('Not deleting cases for %s: %s', username, form.errors)
        return {}, status.SEE_OTHER, {'Location': next_page}
    for case_id in _untrack_cases(username, form.cases.data or []):
        logger.info('Delete case %s for %s', case_id, username)
    return {}, status.SEE_OTHER, {'Location': next_page}


def update_cases() -> ResponseData:
    """Check every tracked case, and report whether all could be checked."""
    result: SyncResult = sync.update_cases()
    data = {'result': result}
    if result.ok:
        return data, status.OK, {}
    return data, status.BAD_REQUEST, {}
