import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List

# ---------- flag types ----------
# content
FINANCIAL_SCAM = "financial_scam"
PHISHING_ATTEMPT = "phishing_attempt"
CLICKBAIT = "clickbait"
FAKE_URGENCY = "fake_urgency"
MISLEADING_INFO = "misleading_info"
# behavioral
REPETITIVE_POSTING = "repetitive_posting"
RAPID_POSTING = "rapid_posting"
SIMILAR_CONTENT = "similar_content"
BOT_LIKE_BEHAVIOR = "bot_like_behavior"
ENGAGEMENT_FARMING = "engagement_farming"
# user behavior
NEW_ACCOUNT = "new_account"
LOW_REPUTATION = "low_reputation"
SUSPICIOUS_TIMING = "suspicious_timing"


@dataclass(frozen=True)
class Flag:
    type: str
    severity: str  # 'low'|'medium'|'high'|'critical'
    confidence: float
    description: str
    evidence: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "confidence", min(max(float(self.confidence), 0.0), 1.0))


class ContentFlag(Flag):
    pass


class BehavioralFlag(Flag):
    pass


class UserBehaviorFlag(Flag):
    pass


@dataclass(frozen=True)
class ActivityItem:
    """One of the author's recent items, oldest or newest first (order is not assumed)."""

    content: str
    created_at: dt.datetime


@dataclass
class SpamAnalysisResult:
    is_spam: bool
    is_scam: bool
    confidence: float
    spam_score: float
    scam_score: float
    suggested_action: str  # 'warn'|'flag'|'reject'|'ban'
    reason: str
    content_flags: List[ContentFlag] = field(default_factory=list)
    behavioral_flags: List[BehavioralFlag] = field(default_factory=list)
    user_behavior_flags: List[UserBehaviorFlag] = field(default_factory=list)

    @property
    def flags(self) -> List[Flag]:
        return [*self.content_flags, *self.behavioral_flags, *self.user_behavior_flags]
