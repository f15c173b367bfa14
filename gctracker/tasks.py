"""Asynchronous tasks."""

from typing import Any, Dict
import logging

from celery import shared_task

from .process import sync

logger = logging.getLogger(__name__)


@shared_task
def update_cases() -> Dict[str, Any]:
    """
    Check every tracked case, and notify users of status changes.

    Scheduled every ``UPDATE_INTERVAL`` seconds by Celery beat; see
    :func:`gctracker.factory.create_worker_app`.

    Returns
    -------
    dict
        Summary of the run.
    """
    result = sync.update_cases()
    return {'checked': result.checked, 'changed': result.changed,
            'failed': result.failed}
