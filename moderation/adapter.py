"""
External signal adapter.

Normalizes a classification service response ({flagged, categories,
category_scores}) into the core's violation vocabulary.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.conf import settings

from common.vocab import Severity, SuggestedAction, Violation, ViolationType

from .serializers import ClassificationResultIn

CATEGORY_MAP = {
    "harassment": ViolationType.HARASSMENT,
    "harassment_threatening": ViolationType.HARASSMENT,
    "hate": ViolationType.HATE_SPEECH,
    "hate_threatening": ViolationType.HATE_SPEECH,
    "self_harm": ViolationType.VIOLENCE,
    "self_harm_instructions": ViolationType.VIOLENCE,
    "self_harm_intent": ViolationType.VIOLENCE,
    "sexual": ViolationType.SEXUAL_CONTENT,
    "sexual_minors": ViolationType.SEXUAL_CONTENT,
    "violence": ViolationType.VIOLENCE,
    "violence_graphic": ViolationType.VIOLENCE,
}

# 카테고리 → threshold 그룹
CATEGORY_FAMILY = {
    "harassment": "harassment",
    "harassment_threatening": "harassment",
    "hate": "hate",
    "hate_threatening": "hate",
    "violence": "violence",
    "violence_graphic": "violence",
    "sexual": "sexual",
    "sexual_minors": "sexual",
    "self_harm": "self_harm",
    "self_harm_instructions": "self_harm",
    "self_harm_intent": "self_harm",
}

DEFAULT_THRESHOLDS = {
    "harassment": 0.7,
    "hate": 0.6,
    "violence": 0.7,
    "sexual": 0.75,
    "self_harm": 0.5,
}
UNKNOWN_THRESHOLD = 0.7

CRITICAL_CATEGORIES = frozenset({"hate_threatening", "harassment_threatening", "violence_graphic", "sexual_minors"})
MODERATE_CATEGORIES = frozenset({"hate", "harassment", "violence", "self_harm_instructions"})
IDENTITY_HARM_TYPES = frozenset({ViolationType.HARASSMENT.value, ViolationType.HATE_SPEECH.value, ViolationType.VIOLENCE.value})

REJECT_CRITICAL_SCORE = 0.8
SUMMARY_MIN_SCORE = 0.5


def normalize_category(name: str) -> str:
    return name.strip().lower().replace("/", "_").replace("-", "_")


@dataclass(frozen=True)
class ClassificationResponse:
    flagged: bool
    categories: Dict[str, bool] = field(default_factory=dict)
    category_scores: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict) -> "ClassificationResponse":
        """
        Accepts the bare result object or an envelope with `results: [...]`,
        in snake_case or camelCase. Raises DRF ValidationError on a malformed shape.
        """
        if isinstance(payload, dict) and isinstance(payload.get("results"), list) and payload["results"]:
            payload = payload["results"][0]
        data = dict(payload or {})
        if "categoryScores" in data and "category_scores" not in data:
            data["category_scores"] = data.pop("categoryScores")

        ser = ClassificationResultIn(data=data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data
        return cls(
            flagged=v["flagged"],
            categories={normalize_category(k): bool(x) for k, x in v["categories"].items()},
            category_scores={normalize_category(k): float(x) for k, x in v["category_scores"].items()},
        )


@dataclass(frozen=True)
class ClassifierConfig:
    thresholds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    unknown_threshold: float = UNKNOWN_THRESHOLD

    @classmethod
    def from_settings(cls) -> "ClassifierConfig":
        return cls(thresholds={**DEFAULT_THRESHOLDS, **getattr(settings, "SAFETY_CLASSIFIER_THRESHOLDS", {})})


class SignalAdapter:
    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig.from_settings()

    def threshold_for(self, category: str) -> float:
        family = CATEGORY_FAMILY.get(normalize_category(category))
        return self.config.thresholds.get(family, self.config.unknown_threshold)

    def severity_for(self, category: str, score: float) -> str:
        category = normalize_category(category)
        if category in CRITICAL_CATEGORIES:
            if score > 0.9:
                return Severity.CRITICAL.value
            if score > 0.7:
                return Severity.HIGH.value
            return Severity.MEDIUM.value
        if category in MODERATE_CATEGORIES:
            if score > 0.8:
                return Severity.HIGH.value
            if score > 0.6:
                return Severity.MEDIUM.value
            return Severity.LOW.value
        if score >= 0.95:
            return Severity.CRITICAL.value
        if score >= 0.85:
            return Severity.HIGH.value
        if score >= 0.65:
            return Severity.MEDIUM.value
        return Severity.LOW.value

    def suggested_action_for(self, violation_type: str, confidence: float) -> str:
        violation_type = getattr(violation_type, "value", violation_type)
        if violation_type in IDENTITY_HARM_TYPES:
            if confidence > 0.9:
                return SuggestedAction.BAN.value
            if confidence > 0.7:
                return SuggestedAction.REJECT.value
            return SuggestedAction.WARN.value
        if violation_type == ViolationType.SEXUAL_CONTENT:
            if confidence > 0.9:
                return SuggestedAction.REJECT.value
            if confidence > 0.7:
                return SuggestedAction.FLAG.value
            return SuggestedAction.WARN.value
        if confidence >= self.config.unknown_threshold:
            return SuggestedAction.REJECT.value
        return SuggestedAction.WARN.value

    def convert_to_violations(self, response: ClassificationResponse) -> List[Violation]:
        out = []
        for category, score in response.category_scores.items():
            violation_type = CATEGORY_MAP.get(category)
            # 매핑 없는 카테고리는 위반으로 만들지 않음
            if violation_type is None or score <= self.threshold_for(category):
                continue
            out.append(
                Violation(
                    type=violation_type.value,
                    severity=self.severity_for(category, score),
                    confidence=score,
                    description=f"Classifier flagged {category} ({score:.0%})",
                    suggested_action=self.suggested_action_for(violation_type, score),
                    category=category,
                    evidence={"score": score, "flagged": response.categories.get(category, False)},
                )
            )
        return out

    def should_reject(self, response: ClassificationResponse) -> bool:
        if response.flagged:
            return True
        return any(response.category_scores.get(c, 0.0) > REJECT_CRITICAL_SCORE for c in CRITICAL_CATEGORIES)

    def summarize(self, response: ClassificationResponse) -> str:
        if not response.flagged:
            return "No violations detected"
        listed = [f"{c} ({s * 100:.1f}%)" for c, s in sorted(response.category_scores.items(), key=lambda kv: -kv[1]) if s > SUMMARY_MIN_SCORE]
        if not listed:
            return "Content flagged by classifier"
        return "Flagged categories: " + ", ".join(listed)
