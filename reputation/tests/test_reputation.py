import datetime as dt

import pytest
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from reputation.models import UserReputation, UserViolation
from reputation.services import ReputationConfig, ReputationEngine, level_for_score

pytestmark = pytest.mark.django_db


@pytest.fixture
def engine():
    return ReputationEngine(ReputationConfig())


def make_rep(user_id="u1", score=75, level="verified", **kw):
    return UserReputation.objects.create(user_id=user_id, score=score, level=level, **kw)


class TestWeights:
    @pytest.mark.parametrize("level,expected", [("trusted", 2.0), ("verified", 1.5), ("standard", 1.0), ("flagged", 0.5), ("banned", 0.0)])
    def test_weight_table(self, engine, level, expected):
        assert engine.weight({"level": level, "score": 50}) == expected

    def test_null_and_unknown_default_to_standard(self, engine):
        assert engine.weight(None) == 1.0
        assert engine.weight({"level": "wizard"}) == 1.0
        assert engine.weight({"level": ["not", "hashable"]}) == 1.0


class TestLevels:
    @pytest.mark.parametrize("score,level", [(100, "trusted"), (90, "trusted"), (89, "verified"), (75, "verified"), (50, "standard"), (25, "flagged"), (24, "banned"), (0, "banned")])
    def test_level_thresholds(self, score, level):
        assert level_for_score(score) == level

    def test_violation_pressure_demotes_one_step(self, engine):
        assert engine.level_for(95, recent_violations=2) == "trusted"
        assert engine.level_for(95, recent_violations=3) == "verified"
        assert engine.level_for(10, recent_violations=5) == "banned"


class TestGet:
    def test_get_creates_default(self, engine):
        rep = engine.get("new-user")
        assert rep.score == 75
        assert rep.level == "verified"
        assert UserReputation.objects.filter(pk="new-user").exists()

    def test_find_missing_is_none(self, engine):
        assert engine.find("nobody") is None


class TestRecordViolation:
    def test_score_drops_by_weighted_impact(self, engine):
        make_rep(score=80, level="verified")
        v = engine.record_violation(user_id="u1", violation_type="hate_speech", severity="high", reason="slur", whisper_id="w1")

        rep = UserReputation.objects.get(pk="u1")
        # 25 * 1.5 * 0.75 = 28.125 → 28
        assert rep.score == 52
        assert rep.level == "standard"
        assert rep.violation_history == [str(v.id)]
        assert rep.last_violation_at is not None

    def test_unknown_type_rejected(self, engine):
        with pytest.raises(ValidationError):
            engine.record_violation(user_id="u1", violation_type="jaywalking")
        assert UserViolation.objects.count() == 0

    def test_violation_history_is_ordered(self, engine):
        now = timezone.now()
        first = engine.record_violation(user_id="u1", violation_type="spam", severity="low", now=now - dt.timedelta(days=2))
        second = engine.record_violation(user_id="u1", violation_type="spam", severity="low", now=now)
        assert [v.id for v in engine.violation_history("u1")] == [first.id, second.id]

    def test_violations_are_immutable_except_expiry(self, engine):
        v = engine.record_violation(user_id="u1", violation_type="spam")
        v.reason = "edited"
        with pytest.raises(ValidationError):
            v.save()

        v.expires_at = timezone.now()
        v.save(update_fields=["expires_at"])
        assert UserViolation.objects.get(pk=v.pk).expires_at is not None


class TestCountersAndRecovery:
    def test_content_outcome_counters(self, engine):
        engine.record_content_outcome("u1", "approved")
        engine.record_content_outcome("u1", "rejected")
        rep = UserReputation.objects.get(pk="u1")
        assert (rep.whisper_count, rep.approved_count, rep.rejected_count) == (2, 1, 1)

        with pytest.raises(ValidationError):
            engine.record_content_outcome("u1", "deleted")

    def test_recovery_by_level(self, engine):
        now = timezone.now()
        make_rep(score=60, level="standard", last_violation_at=now - dt.timedelta(days=10))
        rep = engine.recover("u1", now=now)
        assert rep.score == 70

        # 같은 시점 재실행은 변화 없음
        assert engine.recover("u1", now=now).score == 70

    def test_no_recovery_without_violation(self, engine):
        make_rep(score=60, level="standard")
        assert engine.recover("u1").score == 60

    def test_stats(self, engine):
        make_rep("a", 95, "trusted")
        make_rep("b", 10, "banned")
        stats = engine.stats()
        assert stats["total_users"] == 2
        assert stats["level_breakdown"]["trusted"] == 1
        assert stats["level_breakdown"]["standard"] == 0
        assert stats["average_score"] == 52.5


class TestRecoveryTask:
    def test_recovers_users_with_violations(self, engine):
        from reputation.tasks import process_reputation_recovery

        make_rep(score=50, level="standard")
        UserReputation.objects.filter(pk="u1").update(last_violation_at=timezone.now() - dt.timedelta(days=5))
        UserReputation.objects.create(user_id="clean", score=80, level="verified")

        assert process_reputation_recovery() == 1
        assert UserReputation.objects.get(pk="u1").score == 55
        assert UserReputation.objects.get(pk="clean").score == 80
