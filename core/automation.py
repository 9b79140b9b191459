"""
Compliance Reporting Automation
===============================

Facade over the compliance components.

Wires the report lifecycle, filing submission, alert engine, transaction
checker and scheduler around one repository and one notification
dispatcher, and exposes the operations callers use.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from core.alert_engine import AlertEngine
from core.collaborators import (
    AcceptingRegulatorGateway,
    DataGatherer,
    FilingPreparer,
    HttpRegulatorGateway,
    HttpScreeningLookup,
    NullScreeningLookup,
    PassThroughFilingPreparer,
    RegulatorGateway,
    ScreeningLookup,
    default_gatherers,
)
from core.config import ComplianceConfig
from core.filing_submission import FilingFilter, FilingSubmissionManager, SubmissionRetryPolicy
from core.models import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    ComplianceAlert,
    ComplianceReport,
    ComplianceSchedule,
    FilingType,
    RegulatoryFiling,
    ReportingPeriod,
    ReportStatus,
    ReportType,
    ScheduleFrequency,
)
from core.notifications import (
    CompositeNotifier,
    FileNotifier,
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
    WebhookNotifier,
)
from core.report_lifecycle import ReportFilter, ReportLifecycleManager
from core.repository import (
    ComplianceRepository,
    InMemoryComplianceRepository,
    SQLiteComplianceRepository,
)
from core.scheduler import ComplianceScheduler, default_schedule_definitions
from core.transaction_compliance import ComplianceCheckResult, TransactionComplianceChecker

logger = logging.getLogger(__name__)


UPCOMING_DEADLINE_WINDOW = timedelta(days=30)


class ComplianceReportingAutomation:
    """
    Automated regulatory reporting and compliance monitoring.

    Every collaborator is injectable; omitted ones fall back to the stub
    defaults (empty data, accepting gateway, no screening matches, log
    notifications).
    """

    def __init__(
        self,
        config: ComplianceConfig | None = None,
        repository: ComplianceRepository | None = None,
        gatherers: dict[ReportType, DataGatherer] | None = None,
        preparer: FilingPreparer | None = None,
        gateway: RegulatorGateway | None = None,
        pep_lookup: ScreeningLookup | None = None,
        sanctions_lookup: ScreeningLookup | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or ComplianceConfig()
        tz = self.config.scheduler.tzinfo
        self._clock = clock or (lambda: datetime.now(tz))

        collaborators = self.config.collaborators
        timeout = collaborators.timeout_seconds

        self.repository = repository or InMemoryComplianceRepository()
        self.dispatcher = NotificationDispatcher(
            notifier or LoggingNotifier(),
            timeout_seconds=self.config.notifications.delivery_timeout_seconds,
        )

        self.reports = ReportLifecycleManager(
            self.repository,
            gatherers or default_gatherers(self.config.eu_mifir.lei_code),
            timeout_seconds=timeout,
            clock=self._clock,
        )
        self.filings = FilingSubmissionManager(
            self.repository,
            preparer or PassThroughFilingPreparer(),
            gateway or AcceptingRegulatorGateway(),
            retry_policy=SubmissionRetryPolicy(
                max_attempts=collaborators.submission_attempts,
                initial_delay_seconds=collaborators.retry_initial_delay_seconds,
                max_delay_seconds=collaborators.retry_max_delay_seconds,
            ),
            timeout_seconds=timeout,
            clock=self._clock,
        )
        self.alerts = AlertEngine(self.repository, self.dispatcher, clock=self._clock)
        self.transactions = TransactionComplianceChecker(
            self.alerts,
            self.config.aml_reporting,
            self.config.transaction_monitoring,
            pep_lookup=pep_lookup,
            sanctions_lookup=sanctions_lookup,
            timeout_seconds=timeout,
        )
        self.scheduler = ComplianceScheduler(
            self.repository,
            self.reports,
            self.filings,
            self.dispatcher,
            tick_interval_seconds=self.config.scheduler.tick_interval_seconds,
            tz=tz,
            clock=self._clock,
        )

        self._scheduler_task: asyncio.Task | None = None
        self._schedules_initialized = False

    @classmethod
    def from_config(cls, config: ComplianceConfig) -> ComplianceReportingAutomation:
        """Build the engine with the adapters the configuration names."""
        collaborators = config.collaborators

        if config.persistence.backend == "sqlite":
            repository: ComplianceRepository = SQLiteComplianceRepository(config.persistence.db_path)
        else:
            repository = InMemoryComplianceRepository()

        gateway: RegulatorGateway | None = None
        if collaborators.regulator_endpoint:
            gateway = HttpRegulatorGateway(
                collaborators.regulator_endpoint,
                api_key=collaborators.regulator_api_key,
            )

        pep_lookup: ScreeningLookup = NullScreeningLookup("pep")
        if collaborators.pep_endpoint:
            pep_lookup = HttpScreeningLookup(
                collaborators.pep_endpoint, "pep", api_key=collaborators.screening_api_key
            )

        sanctions_lookup: ScreeningLookup = NullScreeningLookup("sanctions")
        if collaborators.sanctions_endpoint:
            sanctions_lookup = HttpScreeningLookup(
                collaborators.sanctions_endpoint, "sanctions", api_key=collaborators.screening_api_key
            )

        return cls(
            config=config,
            repository=repository,
            gateway=gateway,
            pep_lookup=pep_lookup,
            sanctions_lookup=sanctions_lookup,
            notifier=build_notifier(config),
        )

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def generate_report(
        self,
        report_type: ReportType,
        jurisdiction: str,
        period: ReportingPeriod,
        created_by: str,
    ) -> ComplianceReport:
        return await self.reports.generate_report(report_type, jurisdiction, period, created_by)

    def approve_report(self, report_id: str, approved_by: str) -> ComplianceReport | None:
        return self.reports.approve_report(report_id, approved_by)

    def get_reports(self, report_filter: ReportFilter | None = None) -> list[ComplianceReport]:
        return self.reports.get_reports(report_filter)

    # -------------------------------------------------------------------------
    # Filings
    # -------------------------------------------------------------------------

    async def submit_filing(
        self,
        filing_type: FilingType,
        data: dict[str, Any],
        submitted_by: str,
    ) -> RegulatoryFiling:
        return await self.filings.submit_filing(filing_type, data, submitted_by)

    def get_filings(self, filing_filter: FilingFilter | None = None) -> list[RegulatoryFiling]:
        return self.filings.get_filings(filing_filter)

    # -------------------------------------------------------------------------
    # Alerts and transaction screening
    # -------------------------------------------------------------------------

    async def create_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        description: str,
        details: dict[str, Any] | None = None,
        customer_id: str | None = None,
        transaction_id: str | None = None,
    ) -> ComplianceAlert:
        return await self.alerts.create_alert(
            alert_type, severity, description, details, customer_id, transaction_id
        )

    def assign_alert(self, alert_id: str, assignee: str) -> ComplianceAlert | None:
        return self.alerts.assign_alert(alert_id, assignee)

    def resolve_alert(self, alert_id: str, resolution: str) -> ComplianceAlert | None:
        return self.alerts.resolve_alert(alert_id, resolution)

    def get_active_alerts(self) -> list[ComplianceAlert]:
        return self.alerts.get_active_alerts()

    async def check_transaction_compliance(
        self,
        customer_id: str,
        transaction_id: str,
        amount: float,
        transaction_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> ComplianceCheckResult:
        return await self.transactions.check_transaction_compliance(
            customer_id, transaction_id, amount, transaction_type, metadata
        )

    # -------------------------------------------------------------------------
    # Schedules
    # -------------------------------------------------------------------------

    def initialize_schedules(self) -> list[ComplianceSchedule]:
        schedules = self.scheduler.initialize_schedules(
            self.config.scheduler.schedules,
            seed_defaults=self.config.scheduler.seed_default_schedules,
            defaults=default_schedule_definitions(self.config),
        )
        self._schedules_initialized = True
        return schedules

    def create_schedule(
        self,
        report_type: ReportType,
        jurisdiction: str,
        frequency: ScheduleFrequency,
        due_day: int,
        due_time: str,
        auto_generate: bool = True,
        auto_submit: bool = False,
        notification_days: list[int] | None = None,
    ) -> ComplianceSchedule:
        return self.scheduler.create_schedule(
            report_type,
            jurisdiction,
            frequency,
            due_day,
            due_time,
            auto_generate=auto_generate,
            auto_submit=auto_submit,
            notification_days=notification_days or [],
        )

    def get_schedules(self) -> list[ComplianceSchedule]:
        return self.scheduler.get_schedules()

    async def tick(self, now: datetime | None = None) -> list[ComplianceReport]:
        return await self.scheduler.tick(now)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Seed schedules (once) and start the background scheduler."""
        if self._scheduler_task is not None and not self._scheduler_task.done():
            logger.warning("Compliance automation already started")
            return

        if not self._schedules_initialized:
            self.initialize_schedules()

        if not self.config.scheduler.enabled:
            logger.info("Scheduler disabled by configuration")
            return

        self._scheduler_task = asyncio.create_task(self.scheduler.run(), name="compliance_scheduler")
        logger.info("Compliance reporting automation started")

    async def stop(self, drain_timeout: float | None = 10.0) -> None:
        """Stop the scheduler, flush pending notifications and close storage."""
        self.scheduler.stop()
        if self._scheduler_task is not None:
            await self._scheduler_task
            self._scheduler_task = None

        await self.dispatcher.drain(timeout=drain_timeout)
        self.repository.close()
        logger.info("Compliance reporting automation stopped")

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_stats(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Compliance dashboard statistics.

        ``compliance_rate`` is the percentage of reports in ``submitted``
        status, 100 when there are no reports.
        """
        now = now or self._clock()
        reports = self.repository.list_reports()
        alerts = self.repository.list_alerts()
        schedules = self.repository.list_schedules()

        total_reports = len(reports)
        submitted_reports = sum(1 for r in reports if r.status == ReportStatus.SUBMITTED)
        horizon = now + UPCOMING_DEADLINE_WINDOW

        return {
            "total_reports": total_reports,
            "submitted_reports": submitted_reports,
            "active_alerts": sum(1 for a in alerts if a.status == AlertStatus.ACTIVE),
            "scheduled_reports": len(schedules),
            "upcoming_deadlines": sum(1 for s in schedules if s.next_due <= horizon),
            "compliance_rate": (submitted_reports / total_reports * 100) if total_reports else 100.0,
        }

    def get_status(self) -> dict[str, Any]:
        return {
            "stats": self.get_stats(),
            "scheduler": self.scheduler.get_statistics(),
            "notifications": self.dispatcher.get_statistics(),
            "alerts": self.alerts.get_statistics(),
        }


def build_notifier(config: ComplianceConfig) -> Notifier:
    """Assemble the notification channels enabled in the configuration."""
    settings = config.notifications
    channels: list[Notifier] = []

    if settings.log_enabled:
        channels.append(LoggingNotifier(min_severity=settings.log_min_severity))
    if settings.file_path:
        channels.append(FileNotifier(settings.file_path, min_severity=settings.file_min_severity))
    if settings.webhook_url:
        channels.append(WebhookNotifier(
            settings.webhook_url,
            timeout_seconds=settings.webhook_timeout_seconds,
            min_severity=settings.webhook_min_severity,
        ))

    if not channels:
        logger.warning("All notification channels are disabled")
    if len(channels) == 1:
        return channels[0]
    return CompositeNotifier(channels)
