"""
Pattern & behavioral spam/scam detector.

Everything here is a pure function of its inputs (text, the author's recent
activity window and an optional reputation record); nothing is persisted.

흐름:
- content flags: 카테고리별 문구 사전 매칭 → 밀도 기반 confidence
- behavioral flags: 최근 활동 윈도우(유사도/간격/주기성/참여 유도)
- user behavior flags: 평판 레코드(신규 계정/낮은 평판/버스트)
- 점수: confidence × 타입 가중치 × 심각도 가중치 합산 후 [0,1] clamp
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence

from django.conf import settings
from django.utils import timezone

from common.vocab import ReputationLevel, Severity, SuggestedAction, Violation, ViolationType, field_of, step_action

from . import flags as ft
from .flags import ActivityItem, BehavioralFlag, ContentFlag, Flag, SpamAnalysisResult, UserBehaviorFlag
from .patterns import LINK_RX, MONEY_RX, PHRASE_SETS, normalize, phrase_hits

logger = logging.getLogger(__name__)

DEFAULT_SPAM_WEIGHTS = {
    ft.FINANCIAL_SCAM: 0.35,
    ft.PHISHING_ATTEMPT: 0.35,
    ft.CLICKBAIT: 0.35,
    ft.FAKE_URGENCY: 0.3,
    ft.MISLEADING_INFO: 0.3,
    ft.REPETITIVE_POSTING: 0.5,
    ft.RAPID_POSTING: 0.4,
    ft.SIMILAR_CONTENT: 0.35,
    ft.BOT_LIKE_BEHAVIOR: 0.45,
    ft.ENGAGEMENT_FARMING: 0.35,
    ft.NEW_ACCOUNT: 0.15,
    ft.LOW_REPUTATION: 0.2,
    ft.SUSPICIOUS_TIMING: 0.25,
}

# clickbait/behavioral flag는 scam 점수에 기여하지 않음
DEFAULT_SCAM_WEIGHTS = {
    ft.FINANCIAL_SCAM: 0.6,
    ft.PHISHING_ATTEMPT: 0.7,
    ft.FAKE_URGENCY: 0.3,
    ft.MISLEADING_INFO: 0.35,
    ft.NEW_ACCOUNT: 0.15,
    ft.LOW_REPUTATION: 0.25,
}

DEFAULT_SEVERITY_WEIGHTS = {
    "low": 0.75,
    "medium": 1.0,
    "high": 1.25,
    "critical": 1.5,
}

UNKNOWN_SPAM_FLAG_WEIGHT = 0.1
NOW_RX = re.compile(r"\bnow\b")


@dataclass(frozen=True)
class DetectorConfig:
    spam_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SPAM_WEIGHTS))
    scam_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SCAM_WEIGHTS))
    severity_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SEVERITY_WEIGHTS))
    spam_threshold: float = 0.5
    scam_threshold: float = 0.6
    reject_threshold: float = 0.7
    flag_min_score: float = 0.3
    repetition_threshold: float = 0.8
    near_repetition_threshold: float = 0.6
    cross_similarity_threshold: float = 0.7
    new_account_hours: int = 24
    low_reputation_score: int = 50
    burst_window_seconds: int = 600

    @classmethod
    def from_settings(cls) -> "DetectorConfig":
        return cls(
            spam_weights={**DEFAULT_SPAM_WEIGHTS, **getattr(settings, "SAFETY_SPAM_WEIGHTS", {})},
            scam_weights={**DEFAULT_SCAM_WEIGHTS, **getattr(settings, "SAFETY_SCAM_WEIGHTS", {})},
            spam_threshold=getattr(settings, "SAFETY_SPAM_THRESHOLD", 0.5),
            scam_threshold=getattr(settings, "SAFETY_SCAM_THRESHOLD", 0.6),
        )


# ---------- statistical primitives ----------
def _tokens(text: str) -> set:
    return set(normalize(text).split())


def text_similarity(a: str, b: str) -> float:
    """Token-overlap ratio: shared tokens / size of the larger token set."""
    ta, tb = _tokens(a), _tokens(b)
    if not ta or not tb:
        return 0.0
    if ta == tb:
        return 1.0
    return len(ta & tb) / max(len(ta), len(tb))


def variance(values: Sequence[float]) -> float:
    """Population variance; 0 for fewer than two values."""
    n = len(values)
    if n < 2:
        return 0.0
    mean = sum(values) / n
    return sum((v - mean) ** 2 for v in values) / n


def _aware(value: dt.datetime) -> dt.datetime:
    return timezone.make_aware(value, dt.timezone.utc) if timezone.is_naive(value) else value


def _intervals(timestamps: Iterable[dt.datetime]) -> List[float]:
    ordered = sorted(timestamps)
    return [(b - a).total_seconds() for a, b in zip(ordered, ordered[1:])]


def _severity_for_score(score: float) -> str:
    if score > 0.7:
        return Severity.HIGH.value
    if score > 0.5:
        return Severity.MEDIUM.value
    return Severity.LOW.value


def _violation_severity(confidence: float) -> str:
    if confidence > 0.8:
        return Severity.HIGH.value
    if confidence > 0.6:
        return Severity.MEDIUM.value
    return Severity.LOW.value


class Detector:
    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig.from_settings()

    # ---------- entry point ----------
    def analyze(
        self,
        content: str,
        recent_activity: Sequence[ActivityItem] = (),
        reputation=None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> SpamAnalysisResult:
        now = _aware(now or timezone.now())
        # 오프셋 없는 시각은 UTC 로 간주
        recent = [ActivityItem(item.content, _aware(item.created_at)) for item in recent_activity or ()]

        content_flags = self.analyze_content(content)
        behavioral_flags = self.analyze_behavior(content, recent, now=now)
        user_flags = self.analyze_user(reputation, recent, now=now)

        spam_score = self.calculate_spam_score(content_flags, behavioral_flags, user_flags)
        scam_score = self.calculate_scam_score(content_flags, behavioral_flags, user_flags)
        is_spam = spam_score > self.config.spam_threshold
        is_scam = scam_score > self.config.scam_threshold

        result = SpamAnalysisResult(
            is_spam=is_spam,
            is_scam=is_scam,
            confidence=max(spam_score, scam_score),
            spam_score=spam_score,
            scam_score=scam_score,
            suggested_action=self.determine_suggested_action(spam_score, scam_score, reputation),
            reason="",
            content_flags=content_flags,
            behavioral_flags=behavioral_flags,
            user_behavior_flags=user_flags,
        )
        result.reason = self.generate_reason(result)
        if is_spam or is_scam:
            logger.info("spam analysis: spam=%.2f scam=%.2f action=%s flags=%s", spam_score, scam_score, result.suggested_action, [f.type for f in result.flags])
        return result

    # ---------- content ----------
    def analyze_content(self, content: str) -> List[ContentFlag]:
        text = normalize(content)
        if not text.strip():
            return []

        scores = {}

        hits = phrase_hits(text, PHRASE_SETS[ft.FINANCIAL_SCAM])
        score = len(hits) * 0.35
        if hits and MONEY_RX.search(text):
            score += 0.2
        scores[ft.FINANCIAL_SCAM] = (score, hits)

        hits = phrase_hits(text, PHRASE_SETS[ft.PHISHING_ATTEMPT])
        score = len(hits) * 0.4
        if "verify" in text or "confirm" in text:
            score += 0.2
        if "account" in text and "suspended" in text:
            score += 0.3
        if "security" in text and "check" in text:
            score += 0.3
        if hits and LINK_RX.search(text):
            score += 0.1
        scores[ft.PHISHING_ATTEMPT] = (score, hits)

        hits = phrase_hits(text, PHRASE_SETS[ft.CLICKBAIT])
        score = len(hits) * 0.3
        if "!" in text:
            score += 0.1
        if "??" in text:
            score += 0.1
        if "shocking" in text or "amazing" in text:
            score += 0.2
        scores[ft.CLICKBAIT] = (score, hits)

        hits = phrase_hits(text, PHRASE_SETS[ft.FAKE_URGENCY])
        score = len(hits) * 0.3
        if NOW_RX.search(text):
            score += 0.1
        if "urgent" in text:
            score += 0.2
        scores[ft.FAKE_URGENCY] = (score, hits)

        hits = phrase_hits(text, PHRASE_SETS[ft.MISLEADING_INFO])
        score = len(hits) * 0.4
        if "100%" in text:
            score += 0.3
        if "guaranteed" in text:
            score += 0.2
        scores[ft.MISLEADING_INFO] = (score, hits)

        descriptions = {
            ft.FINANCIAL_SCAM: "Financial scam lure detected",
            ft.PHISHING_ATTEMPT: "Phishing prompt detected",
            ft.CLICKBAIT: "Clickbait construction detected",
            ft.FAKE_URGENCY: "Manufactured urgency detected",
            ft.MISLEADING_INFO: "Unverifiable absolute claim detected",
        }
        out = []
        for flag_type, (score, hits) in scores.items():
            score = min(score, 1.0)
            if score > self.config.flag_min_score:
                out.append(
                    ContentFlag(
                        type=flag_type,
                        severity=_severity_for_score(score),
                        confidence=score,
                        description=descriptions[flag_type],
                        evidence={"matches": hits},
                    )
                )
        return out

    # ---------- behavior ----------
    def analyze_behavior(self, content: str, recent: Sequence[ActivityItem], *, now: dt.datetime) -> List[BehavioralFlag]:
        cfg = self.config
        candidates = []

        # 현재 글 vs 최근 글 중복
        sims = [text_similarity(content, item.content) for item in recent]
        score = 0.0
        for s in sims:
            if s > cfg.repetition_threshold:
                score += 0.3
            elif s > cfg.near_repetition_threshold:
                score += 0.2
        candidates.append((ft.REPETITIVE_POSTING, min(score, 1.0), "Repeated content across recent posts", {"similarities": [round(s, 3) for s in sims]}))

        # 최근 글끼리 서로 유사
        similar_pairs = sum(1 for a, b in combinations(recent, 2) if text_similarity(a.content, b.content) > cfg.cross_similarity_threshold)
        candidates.append((ft.SIMILAR_CONTENT, min(similar_pairs * 0.2, 1.0), "Highly similar posts in recent activity", {"similar_pairs": similar_pairs}))

        timestamps = [item.created_at for item in recent] + [now]
        gaps = _intervals(timestamps)
        if len(gaps) >= 1:
            mean = sum(gaps) / len(gaps)
            var = variance(gaps)
            score = 0.0
            if mean < 300 and var < 1000:
                score = 0.8
            elif mean < 600:
                score = 0.5
            candidates.append((ft.RAPID_POSTING, score, "Abnormally short gaps between posts", {"mean_gap_seconds": mean, "variance": var}))

        if len(gaps) >= 2:
            mean = sum(gaps) / len(gaps)
            var = variance(gaps)
            score = 0.0
            if var < 100 and mean < 1800:
                score = 0.9
            elif var < 1000 and mean < 3600:
                score = 0.6
            candidates.append((ft.BOT_LIKE_BEHAVIOR, score, "Posting rhythm consistent with automation", {"mean_gap_seconds": mean, "variance": var}))

        score = 0.0
        for text in [content] + [item.content for item in recent]:
            text_lc = normalize(text)
            score += 0.3 * len(phrase_hits(text_lc, PHRASE_SETS[ft.ENGAGEMENT_FARMING]))
            if "like" in text_lc and "comment" in text_lc:
                score += 0.3
            if "share" in text_lc and "follow" in text_lc:
                score += 0.3
            if "tag" in text_lc and "friend" in text_lc:
                score += 0.2
            if "vote" in text_lc or "poll" in text_lc:
                score += 0.2
            if "challenge" in text_lc or "trending" in text_lc:
                score += 0.2
        candidates.append((ft.ENGAGEMENT_FARMING, min(score, 1.0), "Engagement-bait phrasing", {}))

        return [
            BehavioralFlag(type=t, severity=_severity_for_score(s), confidence=s, description=d, evidence=e)
            for t, s, d, e in candidates
            if s > cfg.flag_min_score
        ]

    # ---------- user ----------
    def analyze_user(self, reputation, recent: Sequence[ActivityItem], *, now: dt.datetime) -> List[UserBehaviorFlag]:
        cfg = self.config
        out = []

        created_at = field_of(reputation, "created_at")
        if created_at is not None:
            created_at = _aware(created_at)
        if created_at is not None and now - created_at < dt.timedelta(hours=cfg.new_account_hours):
            hours = (now - created_at).total_seconds() / 3600
            out.append(UserBehaviorFlag(ft.NEW_ACCOUNT, Severity.MEDIUM.value, 0.7, "Account is less than a day old", {"account_age_hours": round(hours, 2)}))

        level = field_of(reputation, "level")
        score = field_of(reputation, "score")
        if level in (ReputationLevel.FLAGGED, ReputationLevel.BANNED):
            out.append(UserBehaviorFlag(ft.LOW_REPUTATION, Severity.HIGH.value, 0.9, f"User reputation level is {level}", {"level": str(level), "score": score}))
        elif isinstance(score, (int, float)) and score < cfg.low_reputation_score:
            out.append(UserBehaviorFlag(ft.LOW_REPUTATION, Severity.MEDIUM.value, 0.6, "User reputation score is low", {"score": score}))

        window_start = now - dt.timedelta(seconds=cfg.burst_window_seconds)
        burst = sum(1 for item in recent if item.created_at >= window_start)
        if burst >= 5:
            out.append(UserBehaviorFlag(ft.SUSPICIOUS_TIMING, Severity.HIGH.value, 0.8, f"Burst of {burst} posts within {cfg.burst_window_seconds // 60} minutes", {"count": burst}))
        elif burst >= 3:
            out.append(UserBehaviorFlag(ft.SUSPICIOUS_TIMING, Severity.MEDIUM.value, 0.6, f"Burst of {burst} posts within {cfg.burst_window_seconds // 60} minutes", {"count": burst}))
        return out

    # ---------- scoring ----------
    def _weighted(self, flags: Iterable[Flag], weights: Dict[str, float], default: float = 0.0) -> float:
        total = 0.0
        for f in flags:
            w = weights.get(f.type, default)
            if not w:
                continue
            total += f.confidence * w * self.config.severity_weights.get(f.severity, 1.0)
        return min(max(total, 0.0), 1.0)

    def calculate_spam_score(self, content_flags, behavioral_flags, user_flags) -> float:
        return self._weighted([*content_flags, *behavioral_flags, *user_flags], self.config.spam_weights, UNKNOWN_SPAM_FLAG_WEIGHT)

    def calculate_scam_score(self, content_flags, behavioral_flags, user_flags) -> float:
        return self._weighted([*content_flags, *behavioral_flags, *user_flags], self.config.scam_weights)

    def determine_suggested_action(self, spam_score: float, scam_score: float, reputation=None) -> str:
        # 0.3~0.7 중간 구간도 warn: 오탐을 줄이기 위해 의도적으로 관대함
        score = max(spam_score, scam_score)
        action = SuggestedAction.REJECT.value if score >= self.config.reject_threshold else SuggestedAction.WARN.value

        level = field_of(reputation, "level")
        if level == ReputationLevel.TRUSTED:
            action = step_action(action, -1)
        elif level == ReputationLevel.BANNED:
            action = step_action(action, +1)
        return action

    def generate_reason(self, result: SpamAnalysisResult) -> str:
        parts = []
        flag_types = {f.type for f in result.flags}
        if result.is_scam:
            scam_flags = [f.type for f in result.flags if f.type in self.config.scam_weights]
            if scam_flags:
                parts.append(f"Detected {len(scam_flags)} scam indicators ({', '.join(scam_flags)})")
            else:
                parts.append("Suspicious scam-like patterns detected")
        if result.is_spam:
            spam_flags = [f.type for f in result.flags]
            parts.append(f"Detected {len(spam_flags)} spam indicators ({', '.join(spam_flags)})")
        if ft.NEW_ACCOUNT in flag_types:
            parts.append("New account")
        if ft.LOW_REPUTATION in flag_types:
            parts.append("Low reputation user")
        return "; ".join(parts) or "Suspicious content detected"


def convert_to_violations(result: SpamAnalysisResult) -> List[Violation]:
    """At most one scam and one spam violation per analysis."""
    out = []
    if result.is_scam:
        out.append(
            Violation(
                type=ViolationType.SCAM.value,
                severity=_violation_severity(result.scam_score),
                confidence=result.scam_score,
                description=result.reason,
                suggested_action=result.suggested_action,
                evidence={"flags": [f.type for f in result.flags]},
            )
        )
    if result.is_spam:
        out.append(
            Violation(
                type=ViolationType.SPAM.value,
                severity=_violation_severity(result.spam_score),
                confidence=result.spam_score,
                description=result.reason,
                suggested_action=result.suggested_action,
                evidence={"flags": [f.type for f in result.flags]},
            )
        )
    return out
