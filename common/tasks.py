import logging

from celery import shared_task

log = logging.getLogger(__name__)


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, max_retries=5)
def publish_safety_event(self, event: str, payload: dict) -> None:
    log.info("[CELERY] EVENT %s %s", event, payload)
