"""
Synchronizes tracked cases with the status page.

A status change is written with compare-and-set against the status that was
read before fetching, so that when two runs overlap only one of them
notifies. Trackers are read before the new status is committed: once it is
committed the change is no longer visible to later runs.
"""

from typing import List
import logging

from ..domain import Case, SyncResult
from ..services import case_status, datastore
from ..services.exceptions import DatastoreUnavailable, StatusUnavailable
from . import notify

logger = logging.getLogger(__name__)

STATUS_CHANGED = 'Your case %s status has changed'


def sync_case(case: Case) -> bool:
    """
    Check one case, and notify its trackers if its status changed.

    Parameters
    ----------
    case : :class:`.Case`
        As stored in the registry; :attr:`.Case.status` is the status that
        the update will be conditioned on.

    Returns
    -------
    bool
        ``True`` if this call changed the status and sent notifications.

    Raises
    ------
    :class:`.StatusUnavailable`
    :class:`.DatastoreUnavailable`

    """
    status = case_status.check_status(case.case_id)
    if status == case.status:
        return False
    if not case.status:
        if datastore.update_status(case.case_id, case.status, status):
            logger.info('Populated status of %s', case.case_id)
        return False

    trackers = datastore.get_trackers(case.case_id)
    if not datastore.update_status(case.case_id, case.status, status):
        logger.info('Status of %s was updated elsewhere', case.case_id)
        return False

    logger.info('%s case status changed', case.case_id)
    for user, name in trackers:
        notify.notify(user, STATUS_CHANGED % (name or case.case_id))
    return True


def update_cases() -> SyncResult:
    """
    Check every case in the registry.

    A case that cannot be checked is logged and skipped; the others are still
    checked.
    """
    cases = datastore.get_all_cases()
    changed: List[str] = []
    failed: List[str] = []
    for case in cases:
        try:
            if sync_case(case):
                changed.append(case.case_id)
        except (StatusUnavailable, DatastoreUnavailable) as e:
            logger.error('Failed to update %s: %s', case.case_id, e)
            failed.append(case.case_id)
    logger.info('Checked %i cases; %i changed, %i failed', len(cases),
                len(changed), len(failed))
    return SyncResult(checked=len(cases), changed=changed, failed=failed)
