import datetime as dt

import pytest
from django.core.management import call_command
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from reputation.models import Suspension, UserReputation
from reputation.services import ReputationConfig, ReputationEngine
from reputation.suspensions import SuspensionService

pytestmark = pytest.mark.django_db


@pytest.fixture
def service():
    return SuspensionService(ReputationEngine(ReputationConfig()))


class TestCreate:
    def test_warning_defaults_to_one_day(self, service):
        now = timezone.now()
        s = service.create(user_id="u1", suspension_type="warning", reason="first strike", moderator_id="mod", now=now)
        assert s.end_date == now + dt.timedelta(hours=24)
        assert s.ban_type == "none"
        # 경고는 정지 상태로 보지 않음
        assert not service.is_suspended("u1")

    def test_temporary_requires_duration(self, service):
        with pytest.raises(ValidationError):
            service.create(user_id="u1", suspension_type="temporary", reason="abuse", moderator_id="mod")

    def test_temporary_applies_penalty(self, service):
        UserReputation.objects.create(user_id="u1", score=80, level="verified")
        s = service.create(user_id="u1", suspension_type="temporary", reason="abuse", moderator_id="mod", duration=dt.timedelta(days=3))
        assert s.ban_type == "content_visible"
        assert service.is_suspended("u1")
        assert UserReputation.objects.get(pk="u1").score == 70

    def test_permanent_has_no_end_date_and_bans(self, service):
        s = service.create(user_id="u1", suspension_type="permanent", reason="csam", moderator_id="mod")
        assert s.end_date is None
        assert s.ban_type == "content_hidden"
        rep = UserReputation.objects.get(pk="u1")
        assert (rep.score, rep.level) == (0, "banned")
        assert service.user_status("u1")["can_appeal"] is False

    def test_permanent_rejects_duration(self, service):
        with pytest.raises(ValidationError):
            service.create(user_id="u1", suspension_type="permanent", reason="x", moderator_id="mod", duration=dt.timedelta(days=1))

    def test_blank_reason_rejected(self, service):
        with pytest.raises(ValidationError):
            service.create(user_id="u1", suspension_type="warning", reason="  ", moderator_id="mod")


class TestActiveState:
    def test_derived_from_end_date(self, service):
        now = timezone.now()
        s = service.create(user_id="u1", suspension_type="temporary", reason="x", moderator_id="mod", duration=dt.timedelta(hours=1), now=now - dt.timedelta(hours=2))
        assert not s.currently_active(now)
        assert service.active_for("u1", now) == []

    def test_lift_is_explicit(self, service):
        s = service.create(user_id="u1", suspension_type="temporary", reason="x", moderator_id="mod", duration=dt.timedelta(days=7))
        service.lift(s.id, moderator_id="mod2")
        s.refresh_from_db()
        assert s.is_active is False
        assert not s.currently_active()

    def test_lift_missing_is_not_found(self, service):
        with pytest.raises(NotFound):
            service.lift("00000000-0000-0000-0000-000000000000", moderator_id="mod")


class TestReview:
    def test_extend_and_make_permanent(self, service):
        s = service.create(user_id="u1", suspension_type="temporary", reason="x", moderator_id="mod", duration=dt.timedelta(days=1))
        end = s.end_date
        s = service.review(s.id, "extend", moderator_id="mod", duration=dt.timedelta(days=2))
        assert s.end_date == end + dt.timedelta(days=2)

        s = service.review(s.id, "make_permanent", moderator_id="mod")
        assert s.type == "permanent" and s.end_date is None

        with pytest.raises(ValidationError):
            service.review(s.id, "reduce", moderator_id="mod", duration=dt.timedelta(days=1))


class TestExpiry:
    def test_command_deactivates_ended(self, service):
        past = timezone.now() - dt.timedelta(days=3)
        service.create(user_id="u1", suspension_type="temporary", reason="x", moderator_id="mod", duration=dt.timedelta(days=1), now=past)
        service.create(user_id="u2", suspension_type="permanent", reason="x", moderator_id="mod")

        call_command("expire_suspensions")

        assert Suspension.objects.get(user_id="u1").is_active is False
        assert Suspension.objects.get(user_id="u2").is_active is True
        assert service.stats() == {"total": 2, "active": 1, "warnings": 0, "temporary": 1, "permanent": 1, "expired": 1}
