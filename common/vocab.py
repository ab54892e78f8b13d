"""
Shared trust & safety vocabulary: violation types, severities and suggested actions.

Severity and action are ordered ladders; helpers step along them without
ever leaving the range.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from django.db import models


class ViolationType(models.TextChoices):
    HARASSMENT = "harassment", "Harassment"
    HATE_SPEECH = "hate_speech", "Hate speech"
    VIOLENCE = "violence", "Violence"
    SEXUAL_CONTENT = "sexual_content", "Sexual content"
    DRUGS = "drugs", "Drugs"
    SPAM = "spam", "Spam"
    SCAM = "scam", "Scam"
    COPYRIGHT = "copyright", "Copyright"
    PERSONAL_INFO = "personal_info", "Personal info"
    MINOR_SAFETY = "minor_safety", "Minor safety"


class Severity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class SuggestedAction(models.TextChoices):
    WARN = "warn", "Warn"
    FLAG = "flag", "Flag"
    REJECT = "reject", "Reject"
    BAN = "ban", "Ban"


SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)
ACTION_ORDER = (SuggestedAction.WARN, SuggestedAction.FLAG, SuggestedAction.REJECT, SuggestedAction.BAN)


def severity_rank(severity: str) -> int:
    return SEVERITY_ORDER.index(severity)


def action_rank(action: str) -> int:
    return ACTION_ORDER.index(action)


def step_action(action: str, steps: int) -> str:
    idx = min(max(action_rank(action) + steps, 0), len(ACTION_ORDER) - 1)
    return ACTION_ORDER[idx].value


def strongest_action(*actions: str) -> str:
    if not actions:
        return SuggestedAction.WARN.value
    return max(actions, key=action_rank)


@dataclass(frozen=True)
class Violation:
    """A violation candidate produced by automated scoring; not persisted by itself."""

    type: str
    severity: str
    confidence: float
    description: str
    suggested_action: str
    category: Optional[str] = None
    evidence: Dict = field(default_factory=dict)


class ReputationLevel(models.TextChoices):
    TRUSTED = "trusted", "Trusted"
    VERIFIED = "verified", "Verified"
    STANDARD = "standard", "Standard"
    FLAGGED = "flagged", "Flagged"
    BANNED = "banned", "Banned"


# 높은 신뢰 → 낮은 신뢰 순
LEVEL_ORDER = (
    ReputationLevel.TRUSTED,
    ReputationLevel.VERIFIED,
    ReputationLevel.STANDARD,
    ReputationLevel.FLAGGED,
    ReputationLevel.BANNED,
)


def field_of(record, name: str, default=None):
    """Read `name` from a model instance, dataclass or plain dict; missing → default."""
    if record is None:
        return default
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)
