import pytest

from reports.models import Priority, ReportCategory
from reports.priority import PriorityConfig, PriorityEngine
from reputation.services import ReputationConfig, ReputationEngine

LEVELS = ["trusted", "verified", "standard", "flagged", "banned"]
TIERS = {"low", "medium", "high", "critical"}


@pytest.fixture
def engine():
    return PriorityEngine(PriorityConfig(), ReputationEngine(ReputationConfig()))


class TestCalculatePriority:
    @pytest.mark.parametrize("level", LEVELS)
    @pytest.mark.parametrize("score", [0, 20, 50, 90, 100])
    def test_always_a_tier(self, engine, level, score):
        for category in ReportCategory.values:
            assert engine.calculate_priority({"level": level, "score": score}, category) in TIERS

    def test_end_to_end_examples(self, engine):
        trusted = {"level": "trusted", "score": 95}
        assert engine.calculate_priority(trusted, ReportCategory.VIOLENCE) == Priority.CRITICAL
        assert engine.calculate_priority(trusted, ReportCategory.HARASSMENT) == Priority.HIGH
        assert engine.calculate_priority({"level": "flagged", "score": 30}, ReportCategory.SPAM) == Priority.LOW

    def test_low_score_reduces_one_tier(self, engine):
        # 36 * 2.0 = 72 → MEDIUM, score ≤ 20 → LOW
        assert engine.calculate_priority({"level": "standard", "score": 15}, "minor_safety") == "low"
        assert engine.calculate_priority({"level": "standard", "score": 60}, "minor_safety") == "medium"

    def test_malformed_input_degrades_to_medium(self, engine):
        assert engine.calculate_priority(None, "spam") == "medium"
        assert engine.calculate_priority({"level": "wizard", "score": 50}, "spam") == "medium"
        assert engine.calculate_priority({"level": "standard", "score": 50}, "arson") == "medium"
        assert engine.calculate_priority({"level": "standard", "score": None}, "spam") == "medium"

    def test_multipliers_come_from_settings(self, settings):
        settings.SAFETY_CATEGORY_MULTIPLIERS = {"spam": 3.0}
        engine = PriorityEngine(PriorityConfig.from_settings(), ReputationEngine(ReputationConfig()))
        # 25 * 3.0 = 75 → HIGH
        assert engine.calculate_priority({"level": "flagged", "score": 30}, "spam") == "high"


class TestWeights:
    @pytest.mark.parametrize("level,weight", zip(LEVELS, [2.0, 1.5, 1.0, 0.5, 0.0]))
    def test_table(self, engine, level, weight):
        assert engine.calculate_reputation_weight({"level": level, "score": 50}) == weight

    def test_null_or_unknown(self, engine):
        assert engine.calculate_reputation_weight(None) == 1.0
        assert engine.calculate_reputation_weight({"level": "??"}) == 1.0


class TestEscalation:
    def test_one_step_chain(self, engine):
        assert engine.escalate_priority("low") == "medium"
        assert engine.escalate_priority("medium") == "high"
        assert engine.escalate_priority("high") == "critical"
        assert engine.escalate_priority("critical") == "critical"

    def test_unknown_priority_is_medium(self, engine):
        assert engine.escalate_priority("urgent") == "medium"
        assert engine.escalate_priority(None) == "medium"

    @pytest.mark.parametrize("p", ["low", "medium", "high", "critical"])
    def test_monotone(self, engine, p):
        order = ["low", "medium", "high", "critical"]
        once = engine.escalate_priority(p)
        assert order.index(engine.escalate_priority(once)) >= order.index(once) >= order.index(p)

    @pytest.mark.parametrize(
        "priority,count,expected",
        [
            ("critical", 1, True),
            ("high", 2, False),
            ("high", 3, True),
            ("medium", 4, False),
            ("medium", 5, True),
            ("low", 9, False),
            ("low", 10, True),
            ("bogus", 100, False),
        ],
    )
    def test_should_escalate(self, engine, priority, count, expected):
        assert engine.should_escalate(priority, count) is expected

    def test_descriptions(self, engine):
        assert engine.get_priority_description("critical") == "Critical - Requires immediate attention"
        assert engine.get_priority_description(Priority.LOW) == "Low - Low priority review"
