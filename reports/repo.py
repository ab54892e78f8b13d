"""
Report 저장소 추상화.
- 운영: Django ORM (WhisperReport / CommentReport 테이블)
- 테스트: in-memory 구현으로 동일 시맨틱 제공

서비스 계층은 save / get_by_id / get_all(filters) / update / delete 만 사용.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Type, Union

from .models import BaseReport, CommentReport, WhisperReport

OneOrMany = Union[str, Sequence[str], None]


@dataclass(frozen=True)
class ReportFilters:
    target_id: Optional[str] = None
    reporter_id: Optional[str] = None
    status: OneOrMany = None
    category: OneOrMany = None
    priority: OneOrMany = None
    created_after: Optional[dt.datetime] = None
    created_before: Optional[dt.datetime] = None


def _as_list(v: OneOrMany) -> Optional[List[str]]:
    if v is None:
        return None
    if isinstance(v, str):
        return [v]
    return [str(x) for x in v]


# ---------- 추상 인터페이스 ----------
class BaseReportRepo:
    target_field: str = "whisper_id"

    def build(self, **fields) -> BaseReport: ...
    def save(self, report: BaseReport) -> BaseReport: ...
    def get_by_id(self, report_id, *, for_update: bool = False) -> Optional[BaseReport]: ...
    def get_all(self, filters: Optional[ReportFilters] = None, *, for_update: bool = False) -> List[BaseReport]: ...
    def update(self, report_id, **fields) -> Optional[BaseReport]: ...
    def delete(self, report_id) -> bool: ...


# ---------- Django ORM 백엔드 ----------
class DjangoReportRepo(BaseReportRepo):
    def __init__(self, model: Type[BaseReport] = WhisperReport, target_field: str = "whisper_id"):
        self.model = model
        self.target_field = target_field

    def build(self, **fields):
        return self.model(**fields)

    def save(self, report):
        report.save()
        return report

    def get_by_id(self, report_id, *, for_update=False):
        try:
            pk = uuid.UUID(str(report_id))
        except ValueError:
            return None
        qs = self.model.objects.select_for_update() if for_update else self.model.objects.all()
        return qs.filter(pk=pk).first()

    def get_all(self, filters=None, *, for_update=False):
        f = filters or ReportFilters()
        qs = self.model.objects.all()
        if for_update:
            qs = qs.select_for_update()
        if f.target_id is not None:
            qs = qs.filter(**{self.target_field: f.target_id})
        if f.reporter_id is not None:
            qs = qs.filter(reporter_id=f.reporter_id)
        for name in ("status", "category", "priority"):
            values = _as_list(getattr(f, name))
            if values is not None:
                qs = qs.filter(**{f"{name}__in": values})
        if f.created_after is not None:
            qs = qs.filter(created_at__gte=f.created_after)
        if f.created_before is not None:
            qs = qs.filter(created_at__lt=f.created_before)
        return list(qs.order_by("created_at"))

    def update(self, report_id, **fields):
        report = self.get_by_id(report_id)
        if report is None:
            return None
        for k, v in fields.items():
            setattr(report, k, v)
        report.save(update_fields=[*fields.keys(), "updated_at"])
        return report

    def delete(self, report_id):
        report = self.get_by_id(report_id)
        if report is None:
            return False
        report.delete()
        return True


# ---------- in-memory (tests / local) ----------
class InMemoryReportRepo(BaseReportRepo):
    def __init__(self, model: Type[BaseReport] = WhisperReport, target_field: str = "whisper_id"):
        self.model = model
        self.target_field = target_field
        self.rows: Dict[str, BaseReport] = {}
        self.calls: List[str] = []

    def build(self, **fields):
        return self.model(**fields)

    def save(self, report):
        self.calls.append("save")
        self.rows[str(report.id)] = report
        return report

    def get_by_id(self, report_id, *, for_update=False):
        self.calls.append("get_by_id")
        return self.rows.get(str(report_id))

    def _match(self, r: BaseReport, f: ReportFilters) -> bool:
        checks: List[Any] = [
            f.target_id is None or getattr(r, self.target_field) == f.target_id,
            f.reporter_id is None or r.reporter_id == f.reporter_id,
            f.created_after is None or r.created_at >= f.created_after,
            f.created_before is None or r.created_at < f.created_before,
        ]
        for name in ("status", "category", "priority"):
            values = _as_list(getattr(f, name))
            checks.append(values is None or str(getattr(r, name)) in values)
        return all(checks)

    def get_all(self, filters=None, *, for_update=False):
        self.calls.append("get_all")
        f = filters or ReportFilters()
        return sorted((r for r in self.rows.values() if self._match(r, f)), key=lambda r: r.created_at)

    def update(self, report_id, **fields):
        self.calls.append("update")
        report = self.rows.get(str(report_id))
        if report is None:
            return None
        for k, v in fields.items():
            setattr(report, k, v)
        return report

    def delete(self, report_id):
        self.calls.append("delete")
        return self.rows.pop(str(report_id), None) is not None


def whisper_report_repo() -> DjangoReportRepo:
    return DjangoReportRepo(WhisperReport, "whisper_id")


def comment_report_repo() -> DjangoReportRepo:
    return DjangoReportRepo(CommentReport, "comment_id")
