"""
Composition root.

Builds one explicitly wired set of services from Django settings. Callers
hold on to the returned `Services`; tests build their own instances with
in-memory repos or fakes instead.
"""

from dataclasses import dataclass

from appeals.services import AppealConfig, AppealWorkflow
from moderation.adapter import ClassifierConfig, SignalAdapter
from moderation.providers import ClassificationProvider, get_provider
from reports.priority import PriorityConfig, PriorityEngine
from reports.repo import comment_report_repo, whisper_report_repo
from reports.services import ReportLifecycleManager
from reputation.services import ReputationConfig, ReputationEngine
from reputation.suspensions import SuspensionService
from spam.detector import Detector, DetectorConfig


@dataclass(frozen=True)
class Services:
    detector: Detector
    adapter: SignalAdapter
    provider: ClassificationProvider
    reputation: ReputationEngine
    suspensions: SuspensionService
    priority: PriorityEngine
    whisper_reports: ReportLifecycleManager
    comment_reports: ReportLifecycleManager
    appeals: AppealWorkflow


def build_services() -> Services:
    reputation = ReputationEngine(ReputationConfig.from_settings())
    priority = PriorityEngine(PriorityConfig.from_settings(), reputation)
    return Services(
        detector=Detector(DetectorConfig.from_settings()),
        adapter=SignalAdapter(ClassifierConfig.from_settings()),
        provider=get_provider(),
        reputation=reputation,
        suspensions=SuspensionService(reputation),
        priority=priority,
        whisper_reports=ReportLifecycleManager(whisper_report_repo(), reputation=reputation, priority=priority, kind="whisper"),
        comment_reports=ReportLifecycleManager(comment_report_repo(), reputation=reputation, priority=priority, kind="comment"),
        appeals=AppealWorkflow(reputation, AppealConfig.from_settings()),
    )
