import json
import logging
from typing import Any, Dict

from django.conf import settings
from django.utils.module_loading import import_string

log = logging.getLogger(__name__)


# ---- Pluggable emitter (out-of-process bus) ----
def _get_emitter():
    path = getattr(settings, "SAFETY_EVENT_EMITTER", None)
    if not path:
        return logging_emitter
    try:
        return import_string(path)
    except ImportError:
        log.exception("Failed to import emitter '%s'; fallback to logging.", path)
        return logging_emitter


def logging_emitter(event: str, payload: Dict[str, Any]) -> None:
    log.info("EVENT %s %s", event, json.dumps(payload, ensure_ascii=False, default=str))


def emit(event: str, payload: Dict[str, Any]) -> None:
    # 이벤트 발행 실패가 본 작업을 깨뜨리지 않도록 격리
    try:
        _get_emitter()(event, payload)
    except Exception:
        log.exception("Emitter failed for %s", event)


# ---- Optional: Celery emitter (use by settings) ----
def celery_emitter(event: str, payload: Dict[str, Any]) -> None:
    # Import only when configured to avoid hard dependency
    from .tasks import publish_safety_event

    publish_safety_event.delay(event, json.loads(json.dumps(payload, default=str)))
