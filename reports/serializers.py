from rest_framework import serializers

from .models import ReportCategory, ReportStatus


class ReportCreateIn(serializers.Serializer):
    target_id = serializers.CharField(max_length=128)
    whisper_id = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")  # 댓글 신고 시 상위 whisper
    reporter_id = serializers.CharField(max_length=128)
    reporter_display_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    category = serializers.ChoiceField(choices=ReportCategory.choices)
    reason = serializers.CharField(max_length=2000)
    evidence = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True, default=None)
    target_owner_id = serializers.CharField(max_length=128, required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs.get("target_owner_id") and attrs["target_owner_id"] == attrs["reporter_id"]:
            raise serializers.ValidationError({"detail": "You cannot report your own content."})
        return attrs


class ResolutionIn(serializers.Serializer):
    action = serializers.CharField(max_length=64)
    reason = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")
    moderator_id = serializers.CharField(max_length=128, required=False, allow_null=True, default=None)


class ReportStatusIn(serializers.Serializer):
    status = serializers.ChoiceField(choices=ReportStatus.choices)
    moderator_id = serializers.CharField(max_length=128, required=False, allow_null=True, default=None)
    resolution = ResolutionIn(required=False, allow_null=True, default=None)
