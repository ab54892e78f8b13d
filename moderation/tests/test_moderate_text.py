import datetime as dt

import pytest
from rest_framework.exceptions import ValidationError

from common.exceptions import DependencyError
from common.vocab import Violation
from moderation.adapter import ClassificationResponse, ClassifierConfig, SignalAdapter
from moderation.providers import MAX_INPUT_CHARS
from moderation.services import dedupe_violations, moderate_text
from spam.detector import Detector, DetectorConfig

NOW = dt.datetime(2026, 1, 1, 12, 0, tzinfo=dt.timezone.utc)
PHISHING_TEXT = "URGENT: your account suspended. Verify your account at http://bad.example to avoid loss"


class StubProvider:
    def __init__(self, scores=None, flagged=False, error=None):
        self.response = ClassificationResponse(flagged=flagged, categories={}, category_scores=scores or {})
        self.error = error
        self.seen = []

    def classify(self, text):
        self.seen.append(text)
        if self.error:
            raise self.error
        return self.response


def run(content, provider=None, **kw):
    return moderate_text(
        content,
        detector=Detector(DetectorConfig()),
        provider=provider or StubProvider(),
        adapter=SignalAdapter(ClassifierConfig()),
        now=NOW,
        **kw,
    )


def violation(vtype, severity, confidence=0.8, action="warn"):
    return Violation(type=vtype, severity=severity, confidence=confidence, description=vtype, suggested_action=action)


class TestModerateText:
    def test_clean_is_allowed(self):
        provider = StubProvider()
        decision = run("Had a great walk in the park today", provider)

        assert decision.allowed is True
        assert decision.verdict == "allow"
        assert decision.suggested_action is None
        assert decision.violations == []
        assert decision.summary == "No violations detected"
        assert provider.seen == ["Had a great walk in the park today"]

    def test_phishing_is_blocked(self):
        decision = run(PHISHING_TEXT)

        assert decision.verdict == "block"
        assert decision.allowed is False
        assert decision.suggested_action == "reject"
        assert [(v.type, v.severity) for v in decision.violations] == [("scam", "high")]
        assert decision.spam.is_scam

    def test_trusted_author_is_flagged_not_blocked(self):
        decision = run(PHISHING_TEXT, reputation={"level": "trusted", "score": 95})

        assert decision.verdict == "flag"
        assert decision.allowed is True
        assert decision.suggested_action == "flag"

    def test_classifier_flag_blocks_and_merges(self):
        provider = StubProvider(scores={"violence": 0.95}, flagged=True)
        decision = run(PHISHING_TEXT, provider)

        assert decision.verdict == "block"
        assert {v.type for v in decision.violations} == {"scam", "violence"}
        assert decision.suggested_action == "ban"
        assert decision.summary.endswith("Flagged categories: violence (95.0%)")
        assert "; " in decision.summary

    def test_classifier_failure_propagates(self):
        with pytest.raises(DependencyError):
            run("hello", StubProvider(error=DependencyError("Failed to classify content: timeout")))

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_blank_content_is_allowed_without_classifier(self, content):
        provider = StubProvider()
        decision = run(content, provider)

        assert decision.verdict == "allow"
        assert decision.allowed is True
        assert decision.violations == []
        assert provider.seen == []

    def test_long_content_is_truncated(self):
        provider = StubProvider()
        decision = run("a" * (MAX_INPUT_CHARS + 500), provider)

        assert decision.verdict == "allow"
        assert len(provider.seen[0]) == MAX_INPUT_CHARS

    def test_non_text_content(self):
        with pytest.raises(ValidationError):
            run({"text": "hi"})


class TestDedupe:
    def test_highest_severity_wins(self):
        out = dedupe_violations([violation("spam", "low"), violation("spam", "high"), violation("scam", "medium")])
        assert sorted((v.type, v.severity) for v in out) == [("scam", "medium"), ("spam", "high")]

    def test_confidence_breaks_ties(self):
        out = dedupe_violations([violation("violence", "high", 0.75), violation("violence", "high", 0.9)])
        assert [v.confidence for v in out] == [0.9]
