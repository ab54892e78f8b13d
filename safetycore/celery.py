import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "safetycore.settings")

app = Celery("safetycore")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# 시간 기반 정리 작업 (core 자체는 스케줄러를 갖지 않음, beat 가 호출)
app.conf.beat_schedule = {
    "reputation-recovery-daily": {
        "task": "reputation.tasks.process_reputation_recovery",
        "schedule": crontab(hour=3, minute=0),
    },
    "expire-suspensions": {
        "task": "reputation.tasks.expire_suspensions",
        "schedule": crontab(minute="*/15"),
    },
    "expire-appeals-daily": {
        "task": "appeals.tasks.expire_appeals",
        "schedule": crontab(hour=4, minute=0),
    },
}
