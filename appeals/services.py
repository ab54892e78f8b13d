"""
Appeal resolution workflow.

상태 전이:
    pending → under_review → {approved, rejected}
    pending/under_review → expired (시간 경과)
partial_approve 는 상태상 approved 와 같고 가점만 작다.

Resolution is the only path that touches reputation, and it does so once
per appeal: the appeal row is locked, its status checked, and the
reputation engine refuses to apply an appeal twice.
"""

import datetime as dt
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from common.events import emit
from common.exceptions import wrap_dependency_error
from common.vocab import ReputationLevel, Severity, field_of
from reputation.models import UserViolation
from reputation.services import APPEAL_APPROVED_BONUS, ReputationEngine

from .models import OUTSTANDING_STATUSES, Appeal, AppealStatus, ResolutionAction
from .serializers import AppealResolutionIn, AppealSubmitIn

logger = logging.getLogger(__name__)

STATUS_FOR_ACTION = {
    ResolutionAction.APPROVE.value: AppealStatus.APPROVED.value,
    ResolutionAction.PARTIAL_APPROVE.value: AppealStatus.APPROVED.value,
    ResolutionAction.REJECT.value: AppealStatus.REJECTED.value,
}

AUTO_APPROVE_REASON = "Auto-approved: trusted user appealing a low-severity violation"
SYSTEM_MODERATOR = "system"


@dataclass(frozen=True)
class AppealConfig:
    window_days: int = 7
    review_days: int = 30
    auto_approve: bool = True
    auto_approve_bonus: int = APPEAL_APPROVED_BONUS

    @classmethod
    def from_settings(cls) -> "AppealConfig":
        return cls(
            window_days=getattr(settings, "SAFETY_APPEAL_WINDOW_DAYS", 7),
            review_days=getattr(settings, "SAFETY_APPEAL_REVIEW_DAYS", 30),
            auto_approve=getattr(settings, "SAFETY_APPEAL_AUTO_APPROVE", True),
        )


class AppealWorkflow:
    def __init__(self, reputation: Optional[ReputationEngine] = None, config: Optional[AppealConfig] = None):
        self.reputation = reputation or ReputationEngine()
        self.config = config or AppealConfig.from_settings()

    # ---------- submission ----------
    def window_open(self, violation, now: Optional[dt.datetime] = None) -> bool:
        now = now or timezone.now()
        return now - violation.created_at <= dt.timedelta(days=self.config.window_days)

    def _violation(self, violation_id) -> UserViolation:
        violation = UserViolation.objects.filter(pk=violation_id).first()
        if violation is None:
            raise NotFound({"detail": "Violation not found."})
        return violation

    def submit(self, data: Dict, reputation=None, violation: Optional[UserViolation] = None, *, now: Optional[dt.datetime] = None) -> Appeal:
        ser = AppealSubmitIn(data=data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data
        now = now or timezone.now()

        try:
            violation = violation or self._violation(v["violation_id"])
            if str(violation.pk) != str(v["violation_id"]):
                raise ValidationError({"detail": "Violation does not match violation_id."})
            if violation.user_id != v["user_id"]:
                raise PermissionDenied({"detail": "You can only appeal your own violations."})
            if not self.window_open(violation, now):
                raise ValidationError({"detail": f"Appeals must be filed within {self.config.window_days} days of the violation."})
            if Appeal.objects.filter(violation_id=violation.pk, status__in=OUTSTANDING_STATUSES).exists():
                raise ValidationError({"detail": "An appeal for this violation is already pending."})

            with transaction.atomic():
                appeal = Appeal.objects.create(
                    user_id=v["user_id"],
                    whisper_id=v["whisper_id"],
                    violation_id=violation.pk,
                    reason=v["reason"],
                    evidence=v.get("evidence"),
                    status=AppealStatus.PENDING,
                    submitted_at=now,
                )
        except IntegrityError:
            # 동시 제출 경합: 조건부 unique 제약에 걸림
            raise ValidationError({"detail": "An appeal for this violation is already pending."})
        except DatabaseError as e:
            logger.exception("Failed to submit appeal: user=%s violation=%s", v["user_id"], v["violation_id"])
            raise wrap_dependency_error("Failed to submit appeal", e) from e

        logger.info("appeal submitted: %s user=%s violation=%s", appeal.id, appeal.user_id, appeal.violation_id)
        emit("AppealSubmitted", {"appeal_id": str(appeal.id), "user_id": appeal.user_id, "violation_id": str(appeal.violation_id)})

        reputation = reputation if reputation is not None else self.reputation.find(v["user_id"])
        if self._auto_approvable(reputation, violation):
            appeal = self.resolve(
                appeal.id,
                {
                    "action": ResolutionAction.APPROVE.value,
                    "reason": AUTO_APPROVE_REASON,
                    "moderator_id": SYSTEM_MODERATOR,
                    "reputation_adjustment": self.config.auto_approve_bonus,
                },
                now=now,
            )
        return appeal

    def _auto_approvable(self, reputation, violation) -> bool:
        if not self.config.auto_approve:
            return False
        return field_of(reputation, "level") == ReputationLevel.TRUSTED and violation.severity == Severity.LOW

    # ---------- review ----------
    def _lock(self, appeal_id) -> Appeal:
        appeal = Appeal.objects.select_for_update().filter(pk=appeal_id).first()
        if appeal is None:
            raise NotFound({"detail": "Appeal not found."})
        return appeal

    @transaction.atomic
    def start_review(self, appeal_id, moderator_id: str, *, now: Optional[dt.datetime] = None) -> Appeal:
        if not moderator_id:
            raise ValidationError({"detail": "moderator_id is required."})
        appeal = self._lock(appeal_id)
        if appeal.status != AppealStatus.PENDING:
            raise ValidationError({"detail": f"Cannot start review of a {appeal.status} appeal."})
        appeal.status = AppealStatus.UNDER_REVIEW
        appeal.reviewed_by = moderator_id
        appeal.reviewed_at = now or timezone.now()
        appeal.save(update_fields=["status", "reviewed_by", "reviewed_at", "updated_at"])
        return appeal

    def resolve(self, appeal_id, resolution: Dict, *, now: Optional[dt.datetime] = None) -> Appeal:
        ser = AppealResolutionIn(data=resolution)
        ser.is_valid(raise_exception=True)
        r = dict(ser.validated_data)
        now = now or timezone.now()

        try:
            with transaction.atomic():
                appeal = self._lock(appeal_id)
                if appeal.status not in OUTSTANDING_STATUSES:
                    raise ValidationError({"detail": f"Appeal is already {appeal.status}."})

                appeal.status = STATUS_FOR_ACTION[r["action"]]
                appeal.reviewed_at = now
                appeal.reviewed_by = r["moderator_id"]
                appeal.resolution = r
                appeal.resolution_reason = r["reason"]
                appeal.save(update_fields=["status", "reviewed_at", "reviewed_by", "resolution", "resolution_reason", "updated_at"])

                self.reputation.apply_appeal_resolution(appeal, r, now=now)
        except DatabaseError as e:
            logger.exception("Failed to resolve appeal %s", appeal_id)
            raise wrap_dependency_error("Failed to resolve appeal", e) from e

        emit(
            "AppealResolved",
            {
                "appeal_id": str(appeal.id),
                "user_id": appeal.user_id,
                "action": r["action"],
                "status": appeal.status,
                "reputation_adjustment": r["reputation_adjustment"],
                "moderator_id": r["moderator_id"],
            },
        )
        return appeal

    # ---------- queries / housekeeping ----------
    def get(self, appeal_id) -> Optional[Appeal]:
        try:
            pk = uuid.UUID(str(appeal_id))
        except ValueError:
            return None
        return Appeal.objects.filter(pk=pk).first()

    def for_user(self, user_id: str) -> List[Appeal]:
        return list(Appeal.objects.filter(user_id=user_id).order_by("-submitted_at"))

    def expire_stale(self, now: Optional[dt.datetime] = None) -> int:
        now = now or timezone.now()
        cutoff = now - dt.timedelta(days=self.config.review_days)
        qs = Appeal.objects.filter(status__in=OUTSTANDING_STATUSES, submitted_at__lt=cutoff)
        ids = [str(pk) for pk in qs.values_list("pk", flat=True)]
        n = qs.update(status=AppealStatus.EXPIRED, updated_at=now)
        if n:
            logger.info("expired %d stale appeals", n)
            emit("AppealsExpired", {"appeal_ids": ids, "count": n})
        return n

    def stats(self) -> Dict:
        by_status = {row["status"]: row["n"] for row in Appeal.objects.values("status").annotate(n=Count("pk"))}
        approved = by_status.get(AppealStatus.APPROVED.value, 0)
        rejected = by_status.get(AppealStatus.REJECTED.value, 0)
        decided = approved + rejected
        return {
            "total": sum(by_status.values()),
            **{s.value: by_status.get(s.value, 0) for s in AppealStatus},
            "approval_rate": round(approved * 100 / decided, 2) if decided else 0.0,
        }
