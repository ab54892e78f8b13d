import datetime as dt
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from django.db import DatabaseError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from common.events import emit
from common.exceptions import wrap_dependency_error
from common.vocab import ReputationLevel, field_of
from reputation.services import ReputationEngine

from .models import ACTIVE_STATUSES, PRIORITY_ORDER, BaseReport, ReportStatus
from .priority import PriorityEngine, priority_rank
from .repo import BaseReportRepo, ReportFilters, whisper_report_repo
from .serializers import ReportCreateIn, ReportStatusIn

logger = logging.getLogger(__name__)

MERGE_MARKER = "\n\n--- Additional Report ---\n"

# 종료 상태(resolved/dismissed)에서는 더 이상 전이 불가
TRANSITIONS = {
    "pending": {"under_review", "resolved", "dismissed", "flagged"},
    "under_review": {"resolved", "dismissed", "flagged"},
    "flagged": {"under_review", "resolved", "dismissed"},
    "resolved": set(),
    "dismissed": set(),
}


class ReputationSource(Protocol):
    def get(self, user_id: str): ...


@dataclass(frozen=True)
class ReportStats:
    target_id: str
    total_reports: int
    unique_reporters: int
    category_breakdown: Dict[str, int] = field(default_factory=dict)
    priority_breakdown: Dict[str, int] = field(default_factory=dict)
    status_breakdown: Dict[str, int] = field(default_factory=dict)
    average_priority: float = 0.0  # LOW=1 … CRITICAL=4
    escalation_rate: float = 0.0  # 한 번 이상 escalate 된 신고 비율(%)


class ReportLifecycleManager:
    """
    Report intake and triage for one kind of target (whisper or comment).

    The repo, reputation source and priority engine are injected; tests
    pass in-memory fakes for any of them.
    """

    def __init__(
        self,
        repo: Optional[BaseReportRepo] = None,
        *,
        reputation: Optional[ReputationSource] = None,
        priority: Optional[PriorityEngine] = None,
        kind: str = "whisper",
    ):
        self.repo = repo or whisper_report_repo()
        self.reputation = reputation or ReputationEngine()
        self.priority = priority or PriorityEngine()
        self.kind = kind

    # ---------- intake ----------
    def create_report(self, data: Dict) -> BaseReport:
        ser = ReportCreateIn(data=data)
        ser.is_valid(raise_exception=True)
        v = ser.validated_data
        prefix = f"Failed to create {self.kind} report"

        try:
            reputation = self.reputation.get(v["reporter_id"])
        except DatabaseError as e:
            logger.exception("%s: reputation lookup failed for %s", prefix, v["reporter_id"])
            raise wrap_dependency_error(prefix, e) from e

        if field_of(reputation, "level") == ReputationLevel.BANNED:
            raise PermissionDenied({"detail": "Banned users cannot submit reports."})

        try:
            with transaction.atomic():
                report, event = self._create_or_merge(v, reputation)
                # 병합으로 이미 한 단계 올라간 신고는 sweep 에서 제외
                escalated = self._auto_escalate(report, skip_id=report.id if event == "ReportMerged" else None)
                if escalated:
                    report = self.repo.get_by_id(report.id) or report
        except DatabaseError as e:
            logger.exception("%s: target=%s reporter=%s", prefix, v["target_id"], v["reporter_id"])
            raise wrap_dependency_error(prefix, e) from e

        emit(
            event,
            {
                "report_id": str(report.id),
                "kind": self.kind,
                "target_id": report.target_id,
                "reporter_id": report.reporter_id,
                "category": str(report.category),
                "priority": str(report.priority),
            },
        )
        if escalated:
            emit("ReportsEscalated", {"kind": self.kind, "target_id": report.target_id, "report_ids": [str(r.id) for r in escalated]})
        return report

    def _create_or_merge(self, v: Dict, reputation):
        existing = self.repo.get_all(ReportFilters(target_id=v["target_id"], reporter_id=v["reporter_id"], status=ACTIVE_STATUSES), for_update=True)
        same = next((r for r in existing if r.category == v["category"]), None)

        if same is not None:
            # 같은 카테고리 재신고 → 기존 신고에 병합하고 한 단계 escalate
            fields = {
                "reason": f"{same.reason}{MERGE_MARKER}{v['reason']}",
                "priority": self.priority.escalate_priority(same.priority),
                "escalation_count": same.escalation_count + 1,
            }
            if v.get("evidence") and not same.evidence:
                fields["evidence"] = v["evidence"]
            report = self.repo.update(same.id, **fields)
            logger.info("merged %s report %s (priority %s→%s)", self.kind, same.id, same.priority, fields["priority"])
            return report, "ReportMerged"

        fields = {
            self.repo.target_field: v["target_id"],
            "reporter_id": v["reporter_id"],
            "reporter_display_name": v.get("reporter_display_name", ""),
            "reporter_reputation": field_of(reputation, "score"),
            "category": v["category"],
            "priority": self.priority.calculate_priority(reputation, v["category"]),
            "status": ReportStatus.PENDING.value,
            "reason": v["reason"],
            "evidence": v.get("evidence"),
            "reputation_weight": self.priority.calculate_reputation_weight(reputation),
        }
        if self.repo.target_field != "whisper_id" and v.get("whisper_id"):
            fields["whisper_id"] = v["whisper_id"]
        report = self.repo.save(self.repo.build(**fields))
        return report, "ReportCreated"

    def _auto_escalate(self, report: BaseReport, skip_id=None) -> List[BaseReport]:
        reports = self.repo.get_all(ReportFilters(target_id=report.target_id), for_update=True)
        if not self.priority.should_escalate(report.priority, len(reports)):
            return []

        changed = []
        for r in reports:
            if skip_id is not None and r.id == skip_id:
                continue
            new_priority = self.priority.escalate_priority(r.priority)
            if new_priority != r.priority:
                changed.append(self.repo.update(r.id, priority=new_priority, escalation_count=r.escalation_count + 1))
        if changed:
            logger.info("auto-escalated %d %s reports on target %s", len(changed), self.kind, report.target_id)
        return changed

    # ---------- moderation ----------
    def update_status(
        self,
        report_id,
        status: str,
        moderator_id: Optional[str] = None,
        resolution: Optional[Dict] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> BaseReport:
        ser = ReportStatusIn(data={"status": status, "moderator_id": moderator_id, "resolution": resolution})
        ser.is_valid(raise_exception=True)
        v = ser.validated_data
        now = now or timezone.now()

        try:
            with transaction.atomic():
                report = self.repo.get_by_id(report_id, for_update=True)
                if report is None:
                    raise NotFound({"detail": "Report not found."})
                if v["status"] not in TRANSITIONS[str(report.status)]:
                    raise ValidationError({"detail": f"Cannot move report from {report.status} to {v['status']}."})

                previous = report.status
                fields = {"status": v["status"], "reviewed_at": now, "reviewed_by": v["moderator_id"]}
                if v["resolution"] is not None:
                    fields["resolution"] = dict(v["resolution"])
                report = self.repo.update(report.id, **fields)
        except DatabaseError as e:
            logger.exception("Failed to update %s report %s", self.kind, report_id)
            raise wrap_dependency_error(f"Failed to update {self.kind} report", e) from e

        emit("ReportStatusChanged", {"report_id": str(report.id), "kind": self.kind, "from": str(previous), "to": str(report.status), "moderator_id": v["moderator_id"]})
        return report

    @transaction.atomic
    def escalate_report(self, report_id, moderator_id: Optional[str] = None) -> BaseReport:
        report = self.repo.get_by_id(report_id, for_update=True)
        if report is None:
            raise NotFound({"detail": "Report not found."})
        new_priority = self.priority.escalate_priority(report.priority)
        if new_priority == report.priority:
            return report
        report = self.repo.update(report.id, priority=new_priority, escalation_count=report.escalation_count + 1)
        emit("ReportsEscalated", {"kind": self.kind, "target_id": report.target_id, "report_ids": [str(report.id)], "moderator_id": moderator_id})
        return report

    def delete_report(self, report_id) -> None:
        if not self.repo.delete(report_id):
            raise NotFound({"detail": "Report not found."})

    # ---------- queries ----------
    def get_report(self, report_id) -> Optional[BaseReport]:
        return self.repo.get_by_id(report_id)

    def get_reports(self, filters: Optional[ReportFilters] = None) -> List[BaseReport]:
        return self.repo.get_all(filters)

    def get_reports_by_reporter(self, reporter_id: str) -> List[BaseReport]:
        return self.repo.get_all(ReportFilters(reporter_id=reporter_id))

    def has_user_reported(self, target_id: str, reporter_id: str, category: Optional[str] = None) -> bool:
        return bool(self.repo.get_all(ReportFilters(target_id=target_id, reporter_id=reporter_id, category=category)))

    def get_stats(self, target_id: str) -> ReportStats:
        reports = self.repo.get_all(ReportFilters(target_id=target_id))
        total = len(reports)
        priorities = Counter(str(r.priority) for r in reports)
        statuses = Counter(str(r.status) for r in reports)
        escalated = sum(1 for r in reports if r.escalation_count > 0)
        return ReportStats(
            target_id=target_id,
            total_reports=total,
            unique_reporters=len({r.reporter_id for r in reports}),
            category_breakdown=dict(Counter(str(r.category) for r in reports)),
            priority_breakdown={p.value: priorities.get(p.value, 0) for p in PRIORITY_ORDER},
            status_breakdown={s.value: statuses.get(s.value, 0) for s in ReportStatus},
            average_priority=round(sum(priority_rank(str(r.priority)) + 1 for r in reports) / total, 2) if total else 0.0,
            escalation_rate=round(escalated * 100 / total, 2) if total else 0.0,
        )
