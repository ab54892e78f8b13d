from rest_framework import serializers


class ClassificationResultIn(serializers.Serializer):
    flagged = serializers.BooleanField()
    categories = serializers.DictField(child=serializers.BooleanField(), required=False, default=dict)
    category_scores = serializers.DictField(child=serializers.FloatField(min_value=0.0, max_value=1.0), required=False, default=dict)


class ModerationCheckIn(serializers.Serializer):
    content = serializers.CharField(allow_blank=True)  # 빈 음성 전사본도 정상 입력
