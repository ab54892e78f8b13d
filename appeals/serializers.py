from rest_framework import serializers

from .models import ResolutionAction


class AppealSubmitIn(serializers.Serializer):
    user_id = serializers.CharField(max_length=128)
    whisper_id = serializers.CharField(max_length=128)
    violation_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=2000)
    evidence = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True, default=None)


class AppealResolutionIn(serializers.Serializer):
    action = serializers.ChoiceField(choices=ResolutionAction.choices)
    reason = serializers.CharField(max_length=2000)
    moderator_id = serializers.CharField(max_length=128)
    reputation_adjustment = serializers.IntegerField(min_value=-100, max_value=100)

    def validate(self, attrs):
        # 승인은 가점(>0), 기각은 감점(<0)만 허용
        adj = attrs["reputation_adjustment"]
        if attrs["action"] == ResolutionAction.REJECT and adj >= 0:
            raise serializers.ValidationError({"reputation_adjustment": "Rejections must lower reputation."})
        if attrs["action"] != ResolutionAction.REJECT and adj <= 0:
            raise serializers.ValidationError({"reputation_adjustment": "Approvals must raise reputation."})
        return attrs
