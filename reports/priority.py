"""
Report priority & escalation engine.

priority 산출:
1) 신고자 평판 레벨별 기준 점수
2) × 카테고리 심각도 배수
3) 밴드 임계값(CRITICAL 90 / HIGH 75 / MEDIUM 50)으로 4단계 매핑
4) 점수 ≥90 이면 한 단계 상향, ≤20 이면 한 단계 하향

All tables live in PriorityConfig. Malformed input never raises out of
the public methods; it degrades to the documented default through
`_degrades_to`.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from django.conf import settings

from common.vocab import field_of
from reputation.services import ReputationEngine

from .models import PRIORITY_ORDER, Priority

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY_THRESHOLDS = {"critical": 90, "high": 75, "medium": 50, "low": 25}

DEFAULT_CATEGORY_MULTIPLIERS = {
    "harassment": 1.5,
    "hate_speech": 1.8,
    "violence": 2.0,
    "sexual_content": 1.7,
    "spam": 1.2,
    "scam": 1.4,
    "copyright": 1.1,
    "personal_info": 1.3,
    "minor_safety": 2.0,
    "other": 1.0,
}

# 신뢰 레벨은 위로, 낮은 레벨은 아래로 치우친 기준점
DEFAULT_LEVEL_BASE_SCORES = {"trusted": 45, "verified": 42, "standard": 36, "flagged": 25, "banned": 15}

DEFAULT_ESCALATION_THRESHOLDS = {"critical": 0, "high": 3, "medium": 5, "low": 10}

PRIORITY_DESCRIPTIONS = {
    "critical": "Critical - Requires immediate attention",
    "high": "High - Requires prompt review",
    "medium": "Medium - Standard review timeline",
    "low": "Low - Low priority review",
}


@dataclass(frozen=True)
class PriorityConfig:
    thresholds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_PRIORITY_THRESHOLDS))
    category_multipliers: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_MULTIPLIERS))
    level_base_scores: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_LEVEL_BASE_SCORES))
    escalation_thresholds: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_ESCALATION_THRESHOLDS))
    boost_score: int = 90
    reduce_score: int = 20

    @classmethod
    def from_settings(cls) -> "PriorityConfig":
        return cls(
            thresholds={**DEFAULT_PRIORITY_THRESHOLDS, **getattr(settings, "SAFETY_PRIORITY_THRESHOLDS", {})},
            category_multipliers={**DEFAULT_CATEGORY_MULTIPLIERS, **getattr(settings, "SAFETY_CATEGORY_MULTIPLIERS", {})},
            level_base_scores={**DEFAULT_LEVEL_BASE_SCORES, **getattr(settings, "SAFETY_LEVEL_BASE_SCORES", {})},
            escalation_thresholds={**DEFAULT_ESCALATION_THRESHOLDS, **getattr(settings, "SAFETY_ESCALATION_THRESHOLDS", {})},
        )


def priority_rank(priority) -> int:
    return PRIORITY_ORDER.index(priority)


def _step(priority, steps: int) -> str:
    idx = min(max(priority_rank(priority) + steps, 0), len(PRIORITY_ORDER) - 1)
    return PRIORITY_ORDER[idx].value


def _degrades_to(default):
    def deco(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("%s degraded to %r: %r", fn.__name__, default, exc)
                return default

        return wrapper

    return deco


class PriorityEngine:
    def __init__(self, config: Optional[PriorityConfig] = None, reputation: Optional[ReputationEngine] = None):
        self.config = config or PriorityConfig.from_settings()
        self.reputation = reputation or ReputationEngine()

    def _band(self, value: float) -> str:
        t = self.config.thresholds
        if value >= t["critical"]:
            return Priority.CRITICAL.value
        if value >= t["high"]:
            return Priority.HIGH.value
        if value >= t["medium"]:
            return Priority.MEDIUM.value
        return Priority.LOW.value

    @_degrades_to(Priority.MEDIUM.value)
    def calculate_priority(self, reputation, category) -> str:
        level = str(field_of(reputation, "level"))
        score = field_of(reputation, "score")
        value = self.config.level_base_scores[level] * self.config.category_multipliers[str(category)]
        priority = self._band(value)

        if score >= self.config.boost_score:
            priority = _step(priority, +1)
        elif score <= self.config.reduce_score:
            priority = _step(priority, -1)
        return priority

    @_degrades_to(1.0)
    def calculate_reputation_weight(self, reputation) -> float:
        return self.reputation.weight(reputation)

    @_degrades_to(Priority.MEDIUM.value)
    def escalate_priority(self, priority) -> str:
        return _step(priority, +1)

    @_degrades_to(Priority.MEDIUM.value)
    def de_escalate_priority(self, priority) -> str:
        return _step(priority, -1)

    @_degrades_to(False)
    def should_escalate(self, priority, report_count: int) -> bool:
        if priority == Priority.CRITICAL:
            return True
        return report_count >= self.config.escalation_thresholds[str(priority)]

    def get_priority_description(self, priority) -> str:
        return PRIORITY_DESCRIPTIONS.get(str(priority), "Unknown priority")
