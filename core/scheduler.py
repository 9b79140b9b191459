"""
Compliance Scheduler
====================

Owns recurring compliance schedules and fires them on a periodic tick.

Per tick, for every schedule:
- if due and auto-generate is on: generate the report (as "system"),
  optionally auto-submit it, then advance ``next_due``
- for each notification offset: send a reminder when today is exactly
  ``offset`` days before the due date

Ticks are serialized by a lock, so a slow tick never overlaps the next one.
One failing schedule is logged and retried on the next tick without
blocking the others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import Callable, Iterable

from core.config import ComplianceConfig, ScheduleDefinition
from core.exceptions import ComplianceError
from core.filing_submission import FilingSubmissionManager
from core.logging_config import get_context_logger
from core.models import (
    REPORT_FILING_TYPES,
    AlertSeverity,
    ComplianceReport,
    ComplianceSchedule,
    Notification,
    NotificationKind,
    ReportStatus,
    ReportType,
    ScheduleFrequency,
    new_id,
)
from core.notifications import NotificationDispatcher
from core.report_lifecycle import SYSTEM_USER, ReportLifecycleManager
from core.repository import ComplianceRepository
from core.schedule_calculator import (
    compute_next_due,
    compute_reporting_period,
    is_notification_day,
    parse_due_time,
    validate_due_day,
)

logger = logging.getLogger(__name__)


DEFAULT_SCHEDULES: tuple[ScheduleDefinition, ...] = (
    ScheduleDefinition(
        report_type=ReportType.AML,
        jurisdiction="US",
        frequency=ScheduleFrequency.MONTHLY,
        due_day=15,
        due_time="09:00",
        notification_days=[7, 3, 1],
    ),
    ScheduleDefinition(
        report_type=ReportType.CTR,
        jurisdiction="US",
        frequency=ScheduleFrequency.MONTHLY,
        due_day=25,
        due_time="09:00",
        notification_days=[7, 3, 1],
    ),
    ScheduleDefinition(
        report_type=ReportType.TRANSACTION_MONITORING,
        jurisdiction="US",
        frequency=ScheduleFrequency.WEEKLY,
        due_day=1,  # Monday
        due_time="09:00",
        notification_days=[2, 1],
    ),
)

# AML schedule shape per aml_reporting.reporting_frequency: (due_day, notification_days)
_AML_SCHEDULE_SHAPES: dict[ScheduleFrequency, tuple[int, list[int]]] = {
    ScheduleFrequency.DAILY: (0, []),
    ScheduleFrequency.WEEKLY: (1, [2, 1]),
    ScheduleFrequency.MONTHLY: (15, [7, 3, 1]),
}


def default_schedule_definitions(config: ComplianceConfig) -> list[ScheduleDefinition]:
    """
    Default schedules for every reporting jurisdiction.

    The AML schedule follows ``aml_reporting`` (skipped when disabled, cadence
    from ``reporting_frequency``), transaction monitoring is skipped when
    disabled, and ``audit.automated_audits`` adds a monthly audit report.
    """
    definitions: list[ScheduleDefinition] = []
    for jurisdiction in config.reporting_jurisdictions:
        for default in DEFAULT_SCHEDULES:
            if default.report_type == ReportType.AML:
                if not config.aml_reporting.enabled:
                    continue
                frequency = config.aml_reporting.reporting_frequency
                due_day, notification_days = _AML_SCHEDULE_SHAPES[frequency]
                default = replace(
                    default,
                    frequency=frequency,
                    due_day=due_day,
                    notification_days=list(notification_days),
                )
            elif default.report_type == ReportType.TRANSACTION_MONITORING:
                if not config.transaction_monitoring.enabled:
                    continue
            definitions.append(replace(
                default,
                jurisdiction=jurisdiction,
                notification_days=list(default.notification_days),
            ))

        if config.audit.enabled and config.audit.automated_audits:
            definitions.append(ScheduleDefinition(
                report_type=ReportType.AUDIT,
                jurisdiction=jurisdiction,
                frequency=ScheduleFrequency.MONTHLY,
                due_day=1,
                due_time="09:00",
                notification_days=[],
            ))
    return definitions


def reminder_severity(days_before: int) -> AlertSeverity:
    """Reminders get more urgent as the due date approaches."""
    if days_before <= 1:
        return AlertSeverity.HIGH
    if days_before <= 3:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


class ComplianceScheduler:
    """
    Periodic driver of compliance schedules.

    Usage:
        scheduler = ComplianceScheduler(repository, reports, filings, dispatcher)
        scheduler.initialize_schedules()
        await scheduler.run()  # until stop()
    """

    def __init__(
        self,
        repository: ComplianceRepository,
        reports: ReportLifecycleManager,
        filings: FilingSubmissionManager,
        dispatcher: NotificationDispatcher,
        tick_interval_seconds: float = 3600.0,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] | None = None,
    ):
        self._repository = repository
        self._reports = reports
        self._filings = filings
        self._dispatcher = dispatcher
        self._tick_interval = tick_interval_seconds
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(self._tz))

        self._tick_lock = asyncio.Lock()
        self._ctx = get_context_logger(__name__, component="scheduler")
        self._stop_event = asyncio.Event()
        self._running = False

        # (schedule_id, next_due iso, offset) reminders already sent
        self._sent_reminders: set[tuple[str, str, int]] = set()
        # Schedules already warned about for auto_generate=False
        self._warned_manual: set[str] = set()

        self._ticks = 0
        self._reports_generated = 0
        self._failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def now(self) -> datetime:
        return self._clock()

    def initialize_schedules(
        self,
        extra: Iterable[ScheduleDefinition] = (),
        seed_defaults: bool = True,
        defaults: Iterable[ScheduleDefinition] | None = None,
    ) -> list[ComplianceSchedule]:
        """
        Create the default schedules plus any configured ones.

        ``defaults`` replaces the built-in AML/CTR/monitoring set (see
        ``default_schedule_definitions``). A repository that already holds
        schedules (restart on a persistent backend) is left as is.
        """
        existing = self._repository.list_schedules()
        if existing:
            logger.info(f"Found {len(existing)} persisted schedules, skipping seeding")
            return existing

        definitions: list[ScheduleDefinition] = []
        if seed_defaults:
            definitions.extend(DEFAULT_SCHEDULES if defaults is None else defaults)
        definitions.extend(extra)

        created = [self.create_from_definition(d) for d in definitions]
        logger.info(f"Initialized {len(created)} compliance schedules")
        return created

    def create_from_definition(self, definition: ScheduleDefinition) -> ComplianceSchedule:
        return self.create_schedule(
            report_type=definition.report_type,
            jurisdiction=definition.jurisdiction,
            frequency=definition.frequency,
            due_day=definition.due_day,
            due_time=definition.due_time,
            auto_generate=definition.auto_generate,
            auto_submit=definition.auto_submit,
            notification_days=definition.notification_days,
        )

    def create_schedule(
        self,
        report_type: ReportType,
        jurisdiction: str,
        frequency: ScheduleFrequency,
        due_day: int,
        due_time: str,
        auto_generate: bool = True,
        auto_submit: bool = False,
        notification_days: Iterable[int] = (),
    ) -> ComplianceSchedule:
        """
        Create and store a schedule with its first due date.

        Raises:
            ConfigurationError: If due_day or due_time is invalid for the frequency
        """
        frequency = ScheduleFrequency(frequency)
        validate_due_day(frequency, due_day)
        parse_due_time(due_time)

        now = self.now()
        schedule = ComplianceSchedule(
            schedule_id=new_id("sch"),
            report_type=ReportType(report_type),
            jurisdiction=jurisdiction,
            frequency=frequency,
            due_day=due_day,
            due_time=due_time,
            next_due=compute_next_due(frequency, due_day, due_time, now),
            auto_generate=auto_generate,
            auto_submit=auto_submit,
            notification_days=list(notification_days),
            created_at=now,
            updated_at=now,
        )
        self._repository.save_schedule(schedule)

        logger.info(
            f"Schedule {schedule.schedule_id} created: {schedule.report_type.value} "
            f"{frequency.value} for {jurisdiction}, next due {schedule.next_due.isoformat()}"
        )
        return schedule

    def get_schedules(self) -> list[ComplianceSchedule]:
        return self._repository.list_schedules()

    def get_schedule(self, schedule_id: str) -> ComplianceSchedule | None:
        return self._repository.get_schedule(schedule_id)

    async def tick(self, now: datetime | None = None) -> list[ComplianceReport]:
        """
        Process every schedule once.

        Args:
            now: Reference time, defaults to the scheduler clock

        Returns:
            Reports generated during this tick
        """
        async with self._tick_lock:
            now = now or self.now()
            self._ticks += 1
            generated: list[ComplianceReport] = []

            for schedule in self._repository.list_schedules():
                # Reminders use the due date as it stood before this tick
                due_before_tick = schedule.next_due
                ctx = self._ctx.with_context(
                    schedule_id=schedule.schedule_id,
                    report_type=schedule.report_type.value,
                )

                if now >= schedule.next_due:
                    try:
                        report = await self._process_schedule(schedule, now, ctx)
                    except Exception as e:
                        self._failures += 1
                        ctx.exception(f"Scheduled generation failed, will retry next tick: {e}")
                    else:
                        if report is not None:
                            generated.append(report)

                self._send_reminders(schedule, due_before_tick, now)

            return generated

    async def _process_schedule(
        self,
        schedule: ComplianceSchedule,
        now: datetime,
        ctx,
    ) -> ComplianceReport | None:
        if not schedule.auto_generate:
            if schedule.schedule_id not in self._warned_manual:
                self._warned_manual.add(schedule.schedule_id)
                ctx.warning(
                    f"Schedule is due since {schedule.next_due.isoformat()} but auto-generate is off; "
                    "the report must be generated manually"
                )
            return None

        ctx.info(f"Processing scheduled report for {schedule.jurisdiction}")

        period = compute_reporting_period(schedule.frequency, schedule.due_day, now)
        report = await self._reports.generate_report(
            schedule.report_type,
            schedule.jurisdiction,
            period,
            SYSTEM_USER,
        )
        self._reports_generated += 1

        if schedule.auto_submit:
            with ctx.temporary_context(step="auto_submit"):
                report = await self._auto_submit(report, ctx)

        schedule.last_generated = now
        schedule.next_due = compute_next_due(schedule.frequency, schedule.due_day, schedule.due_time, now)
        schedule.updated_at = now
        self._repository.save_schedule(schedule)

        ctx.info(f"Generated {report.report_id}, next due {schedule.next_due.isoformat()}")
        return report

    async def _auto_submit(self, report: ComplianceReport, ctx) -> ComplianceReport:
        """
        Approve (as system) and file a scheduled report with the regulator.

        Submission failures are logged and leave the report approved.
        """
        filing_type = REPORT_FILING_TYPES.get(report.report_type)
        if filing_type is None:
            ctx.info(f"No regulatory filing for {report.report_type.value} reports, skipping auto-submit")
            return report

        if report.status != ReportStatus.APPROVED:
            report = self._reports.approve_report(report.report_id, SYSTEM_USER) or report

        try:
            filing = await self._filings.submit_filing(filing_type, report.to_dict(), SYSTEM_USER)
        except ComplianceError as e:
            ctx.error(f"Auto-submission of report {report.report_id} failed: {e}")
            return report

        submitted = self._reports.mark_submitted(report.report_id) or report
        submitted.metadata["filing_id"] = filing.filing_id
        self._repository.save_report(submitted)
        return submitted

    def _send_reminders(self, schedule: ComplianceSchedule, next_due: datetime, now: datetime) -> None:
        for offset in schedule.notification_days:
            if not is_notification_day(next_due, offset, now):
                continue

            key = (schedule.schedule_id, next_due.isoformat(), offset)
            if key in self._sent_reminders:
                continue
            self._sent_reminders.add(key)

            logger.info(
                f"Sending {offset}-day notification for {schedule.report_type.value} report "
                f"({schedule.schedule_id})"
            )
            self._dispatcher.dispatch(Notification(
                kind=NotificationKind.SCHEDULE_DUE,
                severity=reminder_severity(offset),
                title=f"{schedule.report_type.value.upper()} report due in {offset} day(s)",
                message=(
                    f"{schedule.report_type.value} report for {schedule.jurisdiction} "
                    f"is due {next_due.isoformat()}"
                ),
                details={
                    "schedule_id": schedule.schedule_id,
                    "report_type": schedule.report_type.value,
                    "jurisdiction": schedule.jurisdiction,
                    "next_due": next_due.isoformat(),
                    "days_before": offset,
                },
                created_at=now,
            ))

    async def run(self) -> None:
        """Tick until ``stop()`` is called."""
        self._running = True
        logger.info(f"Compliance scheduler started (interval {self._tick_interval:.0f}s)")

        try:
            while not self._stop_event.is_set():
                try:
                    await self.tick()
                except Exception as e:
                    logger.exception(f"Scheduler tick failed: {e}")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._tick_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Compliance scheduler stopped")

    def stop(self) -> None:
        self._stop_event.set()

    def get_statistics(self) -> dict:
        return {
            "running": self._running,
            "ticks": self._ticks,
            "reports_generated": self._reports_generated,
            "failures": self._failures,
            "schedules": len(self._repository.list_schedules()),
            "reminders_sent": len(self._sent_reminders),
        }
