import logging
from importlib import import_module

import httpx
import pytest
from django.db import DatabaseError

from common import events
from common.exceptions import DependencyError, wrap_dependency_error
from common.vocab import step_action, strongest_action

captured = []


def capture_emitter(event, payload):
    captured.append((event, payload))


def broken_emitter(event, payload):
    raise RuntimeError("bus down")


class TestEmit:
    def test_default_logs_event(self, settings, caplog):
        settings.SAFETY_EVENT_EMITTER = ""
        with caplog.at_level(logging.INFO, logger="common.events"):
            events.emit("ReportCreated", {"report_id": "r1"})
        assert 'EVENT ReportCreated {"report_id": "r1"}' in caplog.text

    def test_configured_emitter(self, settings):
        settings.SAFETY_EVENT_EMITTER = "common.tests.test_events.capture_emitter"
        # dotted path 로 import 된 모듈 기준으로 확인
        recorder = import_module("common.tests.test_events")
        recorder.captured.clear()
        events.emit("AppealSubmitted", {"appeal_id": "a1"})
        assert recorder.captured == [("AppealSubmitted", {"appeal_id": "a1"})]

    def test_emitter_failure_is_isolated(self, settings, caplog):
        settings.SAFETY_EVENT_EMITTER = "common.tests.test_events.broken_emitter"
        events.emit("ReportCreated", {})
        assert "Emitter failed for ReportCreated" in caplog.text

    def test_bad_path_falls_back_to_logging(self, settings, caplog):
        settings.SAFETY_EVENT_EMITTER = "common.tests.nowhere.emitter"
        with caplog.at_level(logging.INFO, logger="common.events"):
            events.emit("ReportCreated", {"x": 1})
        assert "EVENT ReportCreated" in caplog.text

    def test_celery_emitter_queues_task(self, monkeypatch):
        from common import tasks

        sent = []
        monkeypatch.setattr(tasks.publish_safety_event, "delay", lambda event, payload: sent.append((event, payload)))
        events.celery_emitter("ReportsEscalated", {"report_ids": ["a"]})
        assert sent == [("ReportsEscalated", {"report_ids": ["a"]})]


class TestErrors:
    @pytest.mark.parametrize("exc", [DatabaseError("db gone"), httpx.ConnectError("db gone")])
    def test_wrap_keeps_message_with_prefix(self, exc):
        wrapped = wrap_dependency_error("Failed to create comment report", exc)
        assert isinstance(wrapped, DependencyError)
        assert wrapped.status_code == 503
        assert str(wrapped.detail) == "Failed to create comment report: db gone"


class TestVocab:
    def test_action_ladder(self):
        assert step_action("reject", -1) == "flag"
        assert step_action("ban", +1) == "ban"
        assert step_action("warn", -1) == "warn"
        assert strongest_action("warn", "reject", "flag") == "reject"
        assert strongest_action() == "warn"
