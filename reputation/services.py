import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Avg, Count, Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from common.events import emit
from common.vocab import LEVEL_ORDER, ReputationLevel, ViolationType, field_of

from .models import SuspensionType, UserReputation, UserViolation

logger = logging.getLogger(__name__)

MIN_SCORE, MAX_SCORE = 0, 100

# (하한 점수, 레벨) 높은 순
LEVEL_THRESHOLDS = (
    (90, ReputationLevel.TRUSTED.value),
    (75, ReputationLevel.VERIFIED.value),
    (50, ReputationLevel.STANDARD.value),
    (25, ReputationLevel.FLAGGED.value),
)

REPUTATION_WEIGHTS = {
    "trusted": 2.0,
    "verified": 1.5,
    "standard": 1.0,
    "flagged": 0.5,
    "banned": 0.0,
}

VIOLATION_IMPACT = {
    "harassment": 15,
    "hate_speech": 25,
    "violence": 30,
    "sexual_content": 20,
    "drugs": 15,
    "spam": 5,
    "scam": 20,
    "copyright": 10,
    "personal_info": 15,
    "minor_safety": 35,
}

SEVERITY_MULTIPLIERS = {"low": 0.5, "medium": 1.0, "high": 1.5, "critical": 2.0}

# 신뢰가 높을수록 감점 완화
PENALTY_MULTIPLIERS = {"trusted": 0.5, "verified": 0.75, "standard": 1.0, "flagged": 1.5, "banned": 2.0}

# 마지막 위반 이후 하루당 회복 점수
RECOVERY_RATES = {"trusted": 2.0, "verified": 1.5, "standard": 1.0, "flagged": 0.5, "banned": 0.0}

APPEAL_APPROVED_BONUS = 5
APPEAL_REJECTED_PENALTY = -5
SUSPENSION_PENALTY = 10


@dataclass(frozen=True)
class ReputationConfig:
    initial_score: int = 75
    weights: Dict[str, float] = field(default_factory=lambda: dict(REPUTATION_WEIGHTS))
    violation_impact: Dict[str, int] = field(default_factory=lambda: dict(VIOLATION_IMPACT))
    severity_multipliers: Dict[str, float] = field(default_factory=lambda: dict(SEVERITY_MULTIPLIERS))
    penalty_multipliers: Dict[str, float] = field(default_factory=lambda: dict(PENALTY_MULTIPLIERS))
    recovery_rates: Dict[str, float] = field(default_factory=lambda: dict(RECOVERY_RATES))
    pressure_window_days: int = 30
    pressure_count: int = 3
    default_impact: int = 10

    @classmethod
    def from_settings(cls) -> "ReputationConfig":
        return cls(
            initial_score=getattr(settings, "SAFETY_INITIAL_REPUTATION", 75),
            weights={**REPUTATION_WEIGHTS, **getattr(settings, "SAFETY_REPUTATION_WEIGHTS", {})},
            violation_impact={**VIOLATION_IMPACT, **getattr(settings, "SAFETY_VIOLATION_IMPACT", {})},
        )


def clamp_score(score: float) -> int:
    return int(min(max(round(score), MIN_SCORE), MAX_SCORE))


def level_for_score(score: int) -> str:
    for floor, level in LEVEL_THRESHOLDS:
        if score >= floor:
            return level
    return ReputationLevel.BANNED.value


class ReputationEngine:
    """
    Owns per-user score, level and violation history.

    Every mutation locks the user's row (select_for_update) inside a
    transaction, so concurrent violations/appeals serialize per user.
    """

    def __init__(self, config: Optional[ReputationConfig] = None):
        self.config = config or ReputationConfig.from_settings()

    # ---------- reads ----------
    def find(self, user_id: str) -> Optional[UserReputation]:
        return UserReputation.objects.filter(pk=user_id).first()

    def get(self, user_id: str) -> UserReputation:
        if not user_id:
            raise ValidationError({"detail": "user_id is required."})
        score = self.config.initial_score
        rep, _ = UserReputation.objects.get_or_create(pk=user_id, defaults={"score": score, "level": level_for_score(score)})
        return rep

    def weight(self, reputation) -> float:
        # 읽기 경로는 fail-open: 알 수 없는 레벨/None → standard 가중치
        standard = self.config.weights.get(ReputationLevel.STANDARD.value, 1.0)
        level = field_of(reputation, "level")
        try:
            return float(self.config.weights[str(level)])
        except (KeyError, TypeError, ValueError):
            if reputation is not None:
                logger.warning("Unrecognized reputation level %r; using standard weight", level)
            return standard

    def recent_violation_count(self, user_id: str, now: Optional[dt.datetime] = None) -> int:
        now = now or timezone.now()
        since = now - dt.timedelta(days=self.config.pressure_window_days)
        return UserViolation.objects.filter(user_id=user_id, created_at__gte=since).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now)).count()

    def level_for(self, score: int, recent_violations: int = 0) -> str:
        level = level_for_score(score)
        # 최근 위반 누적 시 한 단계 강등 (승급은 없음)
        if recent_violations >= self.config.pressure_count and level != ReputationLevel.BANNED:
            level = LEVEL_ORDER[LEVEL_ORDER.index(level) + 1].value
        return level

    def violation_impact(self, violation_type: str, severity: str, level: str) -> int:
        base = self.config.violation_impact.get(str(violation_type), self.config.default_impact)
        sev = self.config.severity_multipliers.get(str(severity), 1.0)
        penalty = self.config.penalty_multipliers.get(str(level), 1.0)
        return int(round(base * sev * penalty))

    def violation_history(self, user_id: str) -> List[UserViolation]:
        return list(UserViolation.objects.filter(user_id=user_id).order_by("created_at"))

    # ---------- writes ----------
    def _lock(self, user_id: str) -> UserReputation:
        self.get(user_id)
        return UserReputation.objects.select_for_update().get(pk=user_id)

    def _relevel(self, rep: UserReputation, now: dt.datetime) -> None:
        if rep.level == ReputationLevel.BANNED and rep.score <= 0:
            return
        rep.level = self.level_for(rep.score, self.recent_violation_count(rep.user_id, now))

    @transaction.atomic
    def record_violation(
        self,
        *,
        user_id: str,
        violation_type: str,
        severity: str = "medium",
        reason: str = "",
        whisper_id: str = "",
        report_count: int = 0,
        moderator_id: Optional[str] = None,
        expires_at: Optional[dt.datetime] = None,
        now: Optional[dt.datetime] = None,
    ) -> UserViolation:
        if violation_type not in ViolationType.values:
            raise ValidationError({"detail": f"Unknown violation type: {violation_type}"})
        now = now or timezone.now()
        rep = self._lock(user_id)

        violation = UserViolation.objects.create(
            user_id=user_id,
            whisper_id=whisper_id or "",
            violation_type=violation_type,
            severity=severity,
            reason=reason,
            report_count=report_count,
            moderator_id=moderator_id,
            created_at=now,
            expires_at=expires_at,
        )

        impact = self.violation_impact(violation_type, severity, rep.level)
        rep.score = clamp_score(rep.score - impact)
        rep.violation_history = [*rep.violation_history, str(violation.id)]
        rep.last_violation_at = now
        rep.last_recovery_at = None
        self._relevel(rep, now)
        rep.save()

        logger.info("violation recorded: user=%s type=%s severity=%s impact=-%d score=%d level=%s", user_id, violation_type, severity, impact, rep.score, rep.level)
        emit("ViolationRecorded", {"violation_id": str(violation.id), "user_id": user_id, "type": violation_type, "severity": severity, "score": rep.score, "level": rep.level})
        return violation

    @transaction.atomic
    def record_content_outcome(self, user_id: str, outcome: str) -> UserReputation:
        """outcome: 'approved'|'flagged'|'rejected'"""
        counters = {"approved": "approved_count", "flagged": "flagged_count", "rejected": "rejected_count"}
        if outcome not in counters:
            raise ValidationError({"detail": f"Unknown content outcome: {outcome}"})
        rep = self._lock(user_id)
        rep.whisper_count += 1
        setattr(rep, counters[outcome], getattr(rep, counters[outcome]) + 1)
        rep.save(update_fields=["whisper_count", counters[outcome], "updated_at"])
        return rep

    @transaction.atomic
    def apply_appeal_resolution(self, appeal, resolution: Dict, *, now: Optional[dt.datetime] = None) -> Optional[UserReputation]:
        """
        Apply a resolved appeal's reputation adjustment, at most once per appeal.

        The appeal row is re-read under lock; if `reputation_applied_at` is
        already set, nothing happens and None is returned.
        """
        now = now or timezone.now()
        locked = type(appeal).objects.select_for_update().get(pk=appeal.pk)
        if locked.reputation_applied_at is not None:
            logger.warning("appeal %s already applied to reputation; skipping", appeal.pk)
            return None

        adjustment = int(resolution.get("reputation_adjustment") or 0)
        rep = self._lock(appeal.user_id)

        if resolution.get("action") in ("approve", "partial_approve") and appeal.violation_id:
            # 승인된 위반은 만료 처리 → 이후 레벨 압력에서 제외
            UserViolation.objects.filter(pk=appeal.violation_id, expires_at__isnull=True).update(expires_at=now)

        before = rep.score
        rep.score = clamp_score(rep.score + adjustment)
        self._relevel(rep, now)
        rep.save()

        type(appeal).objects.filter(pk=appeal.pk).update(reputation_applied_at=now)
        appeal.reputation_applied_at = now

        logger.info("appeal %s applied: user=%s score %d→%d level=%s", appeal.pk, appeal.user_id, before, rep.score, rep.level)
        emit("ReputationAdjusted", {"user_id": appeal.user_id, "appeal_id": str(appeal.pk), "adjustment": adjustment, "score": rep.score, "level": rep.level})
        return rep

    @transaction.atomic
    def apply_suspension(self, user_id: str, suspension_type: str) -> UserReputation:
        rep = self._lock(user_id)
        if suspension_type == SuspensionType.PERMANENT:
            rep.score = MIN_SCORE
            rep.level = ReputationLevel.BANNED.value
        elif suspension_type == SuspensionType.TEMPORARY:
            rep.score = clamp_score(rep.score - SUSPENSION_PENALTY)
            self._relevel(rep, timezone.now())
        rep.save()
        return rep

    @transaction.atomic
    def recover(self, user_id: str, now: Optional[dt.datetime] = None) -> UserReputation:
        now = now or timezone.now()
        rep = self._lock(user_id)
        anchor = rep.last_recovery_at or rep.last_violation_at
        if anchor is None:
            return rep

        days = (now - anchor).days
        gain = int(days * self.config.recovery_rates.get(rep.level, 0.0))
        if gain <= 0:
            return rep

        before = rep.score
        rep.score = clamp_score(rep.score + gain)
        rep.last_recovery_at = now
        self._relevel(rep, now)
        rep.save()
        logger.info("reputation recovered: user=%s %d→%d (%d days)", user_id, before, rep.score, days)
        return rep

    def stats(self) -> Dict:
        qs = UserReputation.objects.all()
        by_level = {row["level"]: row["n"] for row in qs.values("level").annotate(n=Count("pk"))}
        avg = qs.aggregate(avg=Avg("score"))["avg"]
        return {
            "total_users": sum(by_level.values()),
            "level_breakdown": {level.value: by_level.get(level.value, 0) for level in LEVEL_ORDER},
            "average_score": round(avg, 2) if avg is not None else 0.0,
        }
