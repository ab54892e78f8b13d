import datetime as dt
import logging
from typing import Dict, List, Optional

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from reputation.services import ReputationEngine
from spam.flags import ActivityItem

from .services import ModerationDecision, moderate_text

logger = logging.getLogger(__name__)

OUTCOME_FOR_VERDICT = {"allow": "approved", "flag": "flagged", "block": "rejected"}


def _activity(items) -> List[ActivityItem]:
    out = []
    for it in items or []:
        created = it.get("created_at")
        if isinstance(created, str):
            created = parse_datetime(created)
        if created is None:
            continue
        if timezone.is_naive(created):
            created = timezone.make_aware(created, dt.timezone.utc)
        out.append(ActivityItem(content=it.get("content", "") or "", created_at=created))
    return out


class BusConsumer:
    # 실제 환경에선 Kafka/RabbitMQ consumer가 각각의 on_* 핸들러를 호출하도록 연결.
    reputation: Optional[ReputationEngine] = None

    @classmethod
    def _reputation(cls) -> ReputationEngine:
        return cls.reputation or ReputationEngine()

    @classmethod
    def _scan(cls, target_type: str, target_id: str, whisper_id: str, payload: Dict) -> ModerationDecision:
        author_id = payload.get("author_id")
        engine = cls._reputation()
        rep = engine.get(author_id)

        decision = moderate_text(payload.get("content", "") or "", recent_activity=_activity(payload.get("recent_activity")), reputation=rep)

        if decision.verdict != "allow":
            for v in decision.violations:
                engine.record_violation(
                    user_id=author_id,
                    violation_type=v.type,
                    severity=v.severity,
                    reason=v.description,
                    whisper_id=whisper_id,
                )
        engine.record_content_outcome(author_id, OUTCOME_FOR_VERDICT[decision.verdict])

        logger.info("[Moderation] %s scanned: %s=%s verdict=%s action=%s", target_type, target_type, target_id, decision.verdict, decision.suggested_action)
        return decision

    @classmethod
    @transaction.atomic
    def on_whisper_created(cls, event: Dict) -> ModerationDecision:
        """
        event 예시:
        {
            "type": "WhisperCreated",
            "payload": {"whisper_id": "...", "author_id": "...", "content": "...",
                        "recent_activity": [{"content": "...", "created_at": "ISO8601"}]}
        }
        """
        payload = event.get("payload", {})
        return cls._scan("whisper", payload.get("whisper_id"), payload.get("whisper_id") or "", payload)

    @classmethod
    @transaction.atomic
    def on_comment_created(cls, event: Dict) -> ModerationDecision:
        payload = event.get("payload", {})
        return cls._scan("comment", payload.get("comment_id"), payload.get("whisper_id") or "", payload)
