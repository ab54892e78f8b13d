import logging

from celery import shared_task

from .models import UserReputation
from .services import ReputationEngine
from .suspensions import SuspensionService

log = logging.getLogger(__name__)


@shared_task
def process_reputation_recovery():
    engine = ReputationEngine()
    recovered = 0
    user_ids = UserReputation.objects.filter(last_violation_at__isnull=False).exclude(level="banned").values_list("user_id", flat=True)
    for user_id in user_ids.iterator():
        before = engine.find(user_id).score
        if engine.recover(user_id).score > before:
            recovered += 1
    log.info("[CELERY] reputation recovery: %d users recovered", recovered)
    return recovered


@shared_task
def expire_suspensions():
    return SuspensionService().expire()
