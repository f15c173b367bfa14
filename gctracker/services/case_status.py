"""
Integration with the public USCIS case status page.

There is no API; the status is scraped from the HTML response to the same
form submission that a browser makes.
"""

from typing import Dict, Optional
from functools import wraps
import logging

import requests
from bs4 import BeautifulSoup
from werkzeug.local import LocalProxy

from ..context import get_application_config, get_application_global
from .exceptions import StatusUnavailable

logger = logging.getLogger(__name__)

STATUS_URL = 'https://egov.uscis.gov/casestatus/mycasestatus.do'


class CaseStatusSession(object):
    """An HTTP session with the case status page."""

    def __init__(self, url: str = STATUS_URL, timeout: float = 30) -> None:
        """Create a new HTTP session."""
        self.url = url
        self.timeout = timeout
        self._session = requests.Session()
        self._adapter = requests.adapters.HTTPAdapter(max_retries=2)
        self._session.mount('https://', self._adapter)
        logger.debug('New CaseStatusSession at %s', url)

    @staticmethod
    def _form(case_id: str) -> Dict[str, str]:
        return {
            'completedActionsCurrentPage': '0',
            'upcomingActionsCurrentPage': '0',
            'appReceiptNum': case_id,
            'caseStatusSearchBtn': 'CHECK STATUS'
        }

    def check_status(self, case_id: str) -> str:
        """
        Get the current status text of a case.

        Parameters
        ----------
        case_id : str
            A USCIS receipt number.

        Returns
        -------
        str

        Raises
        ------
        :class:`.StatusUnavailable`
            If the page could not be retrieved, or has no status section.

        """
        try:
            response = self._session.post(self.url, data=self._form(case_id),
                                          timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise StatusUnavailable(f'Could not reach status page: {e}') from e
        if response.status_code != requests.codes.ok:
            logger.debug('Status page responded with %i for %s',
                         response.status_code, case_id)
            raise StatusUnavailable(
                'Status page responded with %i' % response.status_code
            )
        status = parse_status(response.text)
        if status is None:
            raise StatusUnavailable(f'No status found for {case_id}')
        return status


def parse_status(html: str) -> Optional[str]:
    """
    Extract the status text from a case status page.

    The heading and the form-field labels in the status section are dropped;
    what remains is the description of the current status.
    """
    soup = BeautifulSoup(html, 'html.parser')
    section = soup.select_one('.current-status-sec')
    if section is None:
        return None
    for element in section.find_all(['strong', 'span']):
        element.decompose()
    return section.get_text().strip()


def init_app(app: Optional[LocalProxy] = None) -> None:
    """Set required configuration defaults for the application."""
    if app is not None:
        app.config.setdefault('STATUS_URL', STATUS_URL)
        app.config.setdefault('STATUS_TIMEOUT', 30)


def get_session(app: Optional[LocalProxy] = None) -> CaseStatusSession:
    """Create a new :class:`.CaseStatusSession`."""
    config = get_application_config(app)
    url = config.get('STATUS_URL', STATUS_URL)
    timeout = float(config.get('STATUS_TIMEOUT', 30))
    return CaseStatusSession(url, timeout)


def current_session(app: Optional[LocalProxy] = None) -> CaseStatusSession:
    """Get the current status page session for this context."""
    g = get_application_global()
    if g:
        if 'case_status' not in g:
            g.case_status = get_session(app)  # type: ignore
        return g.case_status  # type: ignore
    return get_session(app)


@wraps(CaseStatusSession.check_status)
def check_status(case_id: str) -> str:
    """Wrapper for :meth:`CaseStatusSession.check_status`."""
    return current_session().check_status(case_id)
