import pytest

from moderation.providers import DummyProvider
from safetycore.wiring import build_services

pytestmark = pytest.mark.django_db


class TestBuildServices:
    def test_shared_reputation_engine(self, settings):
        settings.SAFETY_CLASSIFIER_PROVIDER = "dummy"
        services = build_services()

        assert isinstance(services.provider, DummyProvider)
        assert services.priority.reputation is services.reputation
        assert services.whisper_reports.reputation is services.reputation
        assert services.comment_reports.priority is services.priority
        assert services.appeals.reputation is services.reputation
        assert services.suspensions.reputation is services.reputation
        assert services.whisper_reports.repo.target_field == "whisper_id"
        assert services.comment_reports.repo.target_field == "comment_id"

    def test_settings_flow_into_configs(self, settings):
        settings.SAFETY_APPEAL_WINDOW_DAYS = 14
        settings.SAFETY_ESCALATION_THRESHOLDS = {"high": 2}
        services = build_services()

        assert services.appeals.config.window_days == 14
        assert services.priority.should_escalate("high", 2) is True

    def test_end_to_end_report_and_appeal(self):
        services = build_services()
        report = services.whisper_reports.create_report({"target_id": "w1", "reporter_id": "r1", "category": "violence", "reason": "threat"})
        assert report.priority in {"medium", "high"}

        violation = services.reputation.record_violation(user_id="author", violation_type="violence", severity="high", whisper_id="w1")
        appeal = services.appeals.submit({"user_id": "author", "whisper_id": "w1", "violation_id": str(violation.id), "reason": "context missing"})
        assert appeal.status == "pending"
