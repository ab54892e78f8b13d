import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from common.vocab import SuggestedAction, Violation, severity_rank, strongest_action
from spam.detector import Detector, convert_to_violations
from spam.flags import ActivityItem, SpamAnalysisResult

from .adapter import ClassificationResponse, SignalAdapter
from .providers import MAX_INPUT_CHARS, ClassificationProvider, get_provider
from .serializers import ModerationCheckIn

logger = logging.getLogger(__name__)

BLOCKING_ACTIONS = frozenset({SuggestedAction.REJECT.value, SuggestedAction.BAN.value})


@dataclass
class ModerationDecision:
    allowed: bool
    verdict: str  # 'allow'|'flag'|'block'
    suggested_action: Optional[str]
    violations: List[Violation] = field(default_factory=list)
    summary: str = ""
    spam: Optional[SpamAnalysisResult] = None
    classification: Optional[ClassificationResponse] = None


def dedupe_violations(violations: Iterable[Violation]) -> List[Violation]:
    # 타입별 1건: severity 높은 쪽, 같으면 confidence 높은 쪽
    best = {}
    for v in violations:
        cur = best.get(v.type)
        if cur is None or (severity_rank(v.severity), v.confidence) > (severity_rank(cur.severity), cur.confidence):
            best[v.type] = v
    return list(best.values())


def moderate_text(
    content: str,
    *,
    recent_activity: Sequence[ActivityItem] = (),
    reputation=None,
    detector: Optional[Detector] = None,
    provider: Optional[ClassificationProvider] = None,
    adapter: Optional[SignalAdapter] = None,
    now: Optional[dt.datetime] = None,
) -> ModerationDecision:
    """
    Detector + classifier combined into one verdict.

    정책: reject/ban 제안 또는 classifier flagged → block, 위반 존재 → flag, 그 외 allow.
    Blank content is allowed without calling the classifier.
    Classifier transport failures surface as DependencyError; no retry here.
    """
    ser = ModerationCheckIn(data={"content": content or ""})
    ser.is_valid(raise_exception=True)
    # 긴 본문은 classifier 입력 한도로 잘라서 검사
    content = ser.validated_data["content"][:MAX_INPUT_CHARS]
    if not content:
        return ModerationDecision(allowed=True, verdict="allow", suggested_action=None, summary="No violations detected")

    detector = detector or Detector()
    provider = provider or get_provider()
    adapter = adapter or SignalAdapter()

    spam = detector.analyze(content, recent_activity, reputation, now=now)
    classification = provider.classify(content)

    violations = dedupe_violations([*convert_to_violations(spam), *adapter.convert_to_violations(classification)])
    actions = [v.suggested_action for v in violations]
    if adapter.should_reject(classification):
        actions.append(SuggestedAction.REJECT.value)
    suggested = strongest_action(*actions) if actions else None

    if suggested in BLOCKING_ACTIONS:
        verdict = "block"
    elif violations:
        verdict = "flag"
    else:
        verdict = "allow"

    parts = []
    if spam.is_spam or spam.is_scam:
        parts.append(spam.reason)
    if classification.flagged:
        parts.append(adapter.summarize(classification))
    summary = "; ".join(parts) or "No violations detected"

    if verdict != "allow":
        logger.info("[Moderation] verdict=%s action=%s violations=%s", verdict, suggested, [v.type for v in violations])
    return ModerationDecision(
        allowed=verdict != "block",
        verdict=verdict,
        suggested_action=suggested,
        violations=violations,
        summary=summary,
        spam=spam,
        classification=classification,
    )
