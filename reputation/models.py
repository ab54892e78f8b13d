import uuid

from django.db import models
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from common.vocab import ReputationLevel, Severity, ViolationType


class UserReputation(models.Model):
    user_id = models.CharField(primary_key=True, max_length=128)
    score = models.IntegerField(default=75)  # 0~100
    level = models.CharField(max_length=16, choices=ReputationLevel.choices, default=ReputationLevel.VERIFIED)
    whisper_count = models.PositiveIntegerField(default=0)
    approved_count = models.PositiveIntegerField(default=0)
    flagged_count = models.PositiveIntegerField(default=0)
    rejected_count = models.PositiveIntegerField(default=0)
    violation_history = models.JSONField(default=list)  # UserViolation id 목록(오래된 순)
    last_violation_at = models.DateTimeField(null=True, blank=True)
    last_recovery_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "user_reputations"
        indexes = [models.Index(fields=["level"]), models.Index(fields=["score"])]

    def __str__(self):
        return f"{self.user_id} {self.level}({self.score})"


class UserViolation(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=128, db_index=True)
    whisper_id = models.CharField(max_length=128, blank=True, default="")
    violation_type = models.CharField(max_length=32, choices=ViolationType.choices)
    severity = models.CharField(max_length=16, choices=Severity.choices, default=Severity.MEDIUM)
    reason = models.TextField(blank=True, default="")
    report_count = models.PositiveIntegerField(default=0)
    moderator_id = models.CharField(max_length=128, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "user_violations"
        indexes = [models.Index(fields=["user_id", "created_at"])]

    def save(self, *args, **kwargs):
        # 생성 이후에는 expires_at 만 변경 가능
        update_fields = kwargs.get("update_fields")
        if not self._state.adding and (update_fields is None or set(update_fields) - {"expires_at"}):
            raise ValidationError({"detail": "Violations are immutable once recorded."})
        super().save(*args, **kwargs)

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return self.expires_at is not None and self.expires_at <= now

    def __str__(self):
        return f"{self.violation_type}:{self.user_id}"


class SuspensionType(models.TextChoices):
    WARNING = "warning", "Warning"
    TEMPORARY = "temporary", "Temporary"
    PERMANENT = "permanent", "Permanent"


class BanType(models.TextChoices):
    NONE = "none", "None"  # 경고: 콘텐츠 유지
    CONTENT_VISIBLE = "content_visible", "Content visible"  # 작성 불가, 기존 콘텐츠 노출
    CONTENT_HIDDEN = "content_hidden", "Content hidden"  # 영구 정지: 콘텐츠 숨김


class Suspension(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=128, db_index=True)
    type = models.CharField(max_length=16, choices=SuspensionType.choices)
    ban_type = models.CharField(max_length=24, choices=BanType.choices, null=True, blank=True)
    reason = models.TextField()
    moderator_id = models.CharField(max_length=128)
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "suspensions"
        indexes = [models.Index(fields=["user_id", "is_active"])]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(type=SuspensionType.PERMANENT) | models.Q(end_date__isnull=True),
                name="permanent_suspension_has_no_end_date",
            )
        ]

    def currently_active(self, now=None) -> bool:
        if not self.is_active:
            return False
        if self.type == SuspensionType.PERMANENT or self.end_date is None:
            return True
        return self.end_date > (now or timezone.now())

    def __str__(self):
        return f"{self.type}:{self.user_id}"
