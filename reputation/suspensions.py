import datetime as dt
import logging
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from common.events import emit

from .models import BanType, Suspension, SuspensionType
from .services import ReputationEngine

logger = logging.getLogger(__name__)

WARNING_DURATION = dt.timedelta(hours=24)

BAN_TYPE_FOR = {
    SuspensionType.WARNING.value: BanType.NONE.value,
    SuspensionType.TEMPORARY.value: BanType.CONTENT_VISIBLE.value,
    SuspensionType.PERMANENT.value: BanType.CONTENT_HIDDEN.value,
}

REVIEW_ACTIONS = ("extend", "reduce", "remove", "make_permanent")


class SuspensionService:
    def __init__(self, reputation: Optional[ReputationEngine] = None):
        self.reputation = reputation or ReputationEngine()

    def get(self, suspension_id) -> Optional[Suspension]:
        return Suspension.objects.filter(pk=suspension_id).first()

    def _get_for_update(self, suspension_id) -> Suspension:
        try:
            return Suspension.objects.select_for_update().get(pk=suspension_id)
        except Suspension.DoesNotExist:
            raise NotFound({"detail": "Suspension not found."})

    @transaction.atomic
    def create(
        self,
        *,
        user_id: str,
        suspension_type: str,
        reason: str,
        moderator_id: str,
        duration: Optional[dt.timedelta] = None,
        now: Optional[dt.datetime] = None,
    ) -> Suspension:
        if not (user_id and reason and reason.strip() and moderator_id):
            raise ValidationError({"detail": "user_id, reason and moderator_id are required."})
        if suspension_type not in SuspensionType.values:
            raise ValidationError({"detail": f"Unknown suspension type: {suspension_type}"})

        if suspension_type == SuspensionType.PERMANENT:
            if duration is not None:
                raise ValidationError({"detail": "Permanent suspensions cannot have a duration."})
        elif suspension_type == SuspensionType.TEMPORARY:
            if duration is None or duration <= dt.timedelta(0):
                raise ValidationError({"detail": "Temporary suspensions require a positive duration."})
        else:
            duration = duration or WARNING_DURATION

        start = now or timezone.now()
        suspension = Suspension.objects.create(
            user_id=user_id,
            type=suspension_type,
            ban_type=BAN_TYPE_FOR[suspension_type],
            reason=reason.strip(),
            moderator_id=moderator_id,
            start_date=start,
            end_date=None if suspension_type == SuspensionType.PERMANENT else start + duration,
            is_active=True,
        )
        if suspension_type != SuspensionType.WARNING:
            self.reputation.apply_suspension(user_id, suspension_type)

        emit("SuspensionCreated", {"suspension_id": str(suspension.id), "user_id": user_id, "type": suspension_type, "moderator_id": moderator_id})
        return suspension

    @transaction.atomic
    def lift(self, suspension_id, *, moderator_id: str) -> Suspension:
        suspension = self._get_for_update(suspension_id)
        suspension.is_active = False
        suspension.save(update_fields=["is_active", "updated_at"])
        emit("SuspensionLifted", {"suspension_id": str(suspension.id), "user_id": suspension.user_id, "moderator_id": moderator_id})
        return suspension

    @transaction.atomic
    def review(self, suspension_id, action: str, *, moderator_id: str, duration: Optional[dt.timedelta] = None) -> Suspension:
        if action not in REVIEW_ACTIONS:
            raise ValidationError({"detail": f"Unknown review action: {action}"})
        suspension = self._get_for_update(suspension_id)

        if action in ("extend", "reduce"):
            if suspension.type == SuspensionType.PERMANENT:
                raise ValidationError({"detail": f"Cannot {action} a permanent suspension."})
            delta = duration or dt.timedelta(0)
            suspension.end_date = suspension.end_date + delta if action == "extend" else suspension.end_date - delta
        elif action == "remove":
            suspension.is_active = False
        else:
            suspension.type = SuspensionType.PERMANENT
            suspension.ban_type = BanType.CONTENT_HIDDEN
            suspension.end_date = None
            self.reputation.apply_suspension(suspension.user_id, SuspensionType.PERMANENT)

        suspension.save()
        logger.info("suspension %s reviewed: action=%s moderator=%s", suspension.id, action, moderator_id)
        return suspension

    def active_for(self, user_id: str, now: Optional[dt.datetime] = None) -> List[Suspension]:
        now = now or timezone.now()
        qs = Suspension.objects.filter(user_id=user_id, is_active=True).filter(Q(end_date__isnull=True) | Q(end_date__gt=now))
        return list(qs.order_by("-start_date"))

    def is_suspended(self, user_id: str, now: Optional[dt.datetime] = None) -> bool:
        return any(s.type != SuspensionType.WARNING for s in self.active_for(user_id, now))

    def user_status(self, user_id: str, now: Optional[dt.datetime] = None) -> Dict:
        active = [s for s in self.active_for(user_id, now) if s.type != SuspensionType.WARNING]
        return {
            "suspended": bool(active),
            "suspensions": active,
            "can_appeal": any(s.type != SuspensionType.PERMANENT for s in active),
        }

    def expire(self, now: Optional[dt.datetime] = None) -> int:
        now = now or timezone.now()
        n = Suspension.objects.filter(is_active=True, end_date__isnull=False, end_date__lte=now).exclude(type=SuspensionType.PERMANENT).update(is_active=False, updated_at=now)
        if n:
            logger.info("deactivated %d ended suspensions", n)
        return n

    def stats(self) -> Dict:
        qs = Suspension.objects.all()
        return {
            "total": qs.count(),
            "active": qs.filter(is_active=True).count(),
            "warnings": qs.filter(type=SuspensionType.WARNING).count(),
            "temporary": qs.filter(type=SuspensionType.TEMPORARY).count(),
            "permanent": qs.filter(type=SuspensionType.PERMANENT).count(),
            "expired": qs.filter(is_active=False).count(),
        }
