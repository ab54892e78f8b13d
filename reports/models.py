import uuid

from django.db import models
from django.utils import timezone


class ReportCategory(models.TextChoices):
    HARASSMENT = "harassment", "Harassment"
    HATE_SPEECH = "hate_speech", "Hate speech"
    VIOLENCE = "violence", "Violence"
    SEXUAL_CONTENT = "sexual_content", "Sexual content"
    SPAM = "spam", "Spam"
    SCAM = "scam", "Scam"
    COPYRIGHT = "copyright", "Copyright"
    PERSONAL_INFO = "personal_info", "Personal info"
    MINOR_SAFETY = "minor_safety", "Minor safety"
    OTHER = "other", "Other"


class Priority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class ReportStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    UNDER_REVIEW = "under_review", "Under review"
    RESOLVED = "resolved", "Resolved"
    DISMISSED = "dismissed", "Dismissed"
    FLAGGED = "flagged", "Flagged"


PRIORITY_ORDER = (Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL)
ACTIVE_STATUSES = (ReportStatus.PENDING, ReportStatus.UNDER_REVIEW, ReportStatus.FLAGGED)


class BaseReport(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    whisper_id = models.CharField(max_length=128, db_index=True, blank=True, default="")
    reporter_id = models.CharField(max_length=128, db_index=True)
    reporter_display_name = models.CharField(max_length=150, blank=True, default="")
    reporter_reputation = models.IntegerField(null=True, blank=True)  # 신고 시점 점수 스냅샷
    category = models.CharField(max_length=32, choices=ReportCategory.choices)
    priority = models.CharField(max_length=16, choices=Priority.choices, default=Priority.MEDIUM)
    status = models.CharField(max_length=16, choices=ReportStatus.choices, default=ReportStatus.PENDING)
    reason = models.TextField()
    evidence = models.TextField(null=True, blank=True)
    reputation_weight = models.FloatField(default=1.0)
    escalation_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.CharField(max_length=128, null=True, blank=True)
    resolution = models.JSONField(null=True, blank=True)  # {action, reason, moderator_id}

    class Meta:
        abstract = True

    @property
    def target_id(self) -> str:
        return self.whisper_id

    def __str__(self):
        return f"{self.category}:{self.target_id} by {self.reporter_id} [{self.priority}/{self.status}]"


class WhisperReport(BaseReport):
    class Meta:
        db_table = "whisper_reports"
        indexes = [
            models.Index(fields=["whisper_id", "reporter_id"]),
            models.Index(fields=["status", "priority"]),
            models.Index(fields=["created_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["whisper_id", "reporter_id", "category"],
                condition=models.Q(status__in=["pending", "under_review", "flagged"]),
                name="uniq_active_whisper_report",
            )
        ]


class CommentReport(BaseReport):
    comment_id = models.CharField(max_length=128, db_index=True)

    class Meta:
        db_table = "comment_reports"
        indexes = [
            models.Index(fields=["comment_id", "reporter_id"]),
            models.Index(fields=["status", "priority"]),
            models.Index(fields=["created_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["comment_id", "reporter_id", "category"],
                condition=models.Q(status__in=["pending", "under_review", "flagged"]),
                name="uniq_active_comment_report",
            )
        ]

    @property
    def target_id(self) -> str:
        return self.comment_id
