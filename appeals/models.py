import uuid

from django.db import models
from django.utils import timezone


class AppealStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    UNDER_REVIEW = "under_review", "Under review"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    EXPIRED = "expired", "Expired"


class ResolutionAction(models.TextChoices):
    APPROVE = "approve", "Approve"
    REJECT = "reject", "Reject"
    PARTIAL_APPROVE = "partial_approve", "Partial approve"


OUTSTANDING_STATUSES = (AppealStatus.PENDING, AppealStatus.UNDER_REVIEW)


class Appeal(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=128, db_index=True)
    whisper_id = models.CharField(max_length=128)
    violation_id = models.UUIDField(db_index=True)
    reason = models.TextField()
    evidence = models.TextField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=AppealStatus.choices, default=AppealStatus.PENDING)
    submitted_at = models.DateTimeField(default=timezone.now)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.CharField(max_length=128, null=True, blank=True)
    resolution = models.JSONField(null=True, blank=True)  # {action, reason, moderator_id, reputation_adjustment}
    resolution_reason = models.TextField(blank=True, default="")
    reputation_applied_at = models.DateTimeField(null=True, blank=True)  # 평판 반영 시각(1회 보장)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "appeals"
        indexes = [
            models.Index(fields=["user_id", "submitted_at"]),
            models.Index(fields=["status", "submitted_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["violation_id"],
                condition=models.Q(status__in=["pending", "under_review"]),
                name="one_outstanding_appeal_per_violation",
            )
        ]

    def __str__(self):
        return f"appeal:{self.violation_id} by {self.user_id} [{self.status}]"
