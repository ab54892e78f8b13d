import logging

from celery import shared_task

from .services import AppealWorkflow

log = logging.getLogger(__name__)


@shared_task
def expire_appeals():
    n = AppealWorkflow().expire_stale()
    log.info("[CELERY] expired %d stale appeals", n)
    return n
