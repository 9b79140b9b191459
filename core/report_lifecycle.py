"""
Report Lifecycle Manager
========================

Generation and status tracking of compliance reports.

Lifecycle:
    draft -> review -> approved -> submitted -> accepted | rejected

Audit and transaction-monitoring reports skip human review and are
approved by ``system`` as soon as they are generated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from core.collaborators import DataGatherer, call_with_timeout
from core.exceptions import (
    CollaboratorError,
    ConfigurationError,
    DataGatheringError,
    InvalidTransitionError,
)
from core.models import (
    AUTO_APPROVE_REPORT_TYPES,
    ComplianceReport,
    ReportingPeriod,
    ReportStatus,
    ReportType,
    ensure_aware,
    new_id,
    utc_now,
)
from core.repository import ComplianceRepository

logger = logging.getLogger(__name__)


SYSTEM_USER = "system"

_APPROVABLE_STATUSES = frozenset({ReportStatus.DRAFT, ReportStatus.REVIEW, ReportStatus.APPROVED})


@dataclass
class ReportFilter:
    """Optional criteria for listing reports. Unset fields match everything."""
    report_type: ReportType | None = None
    jurisdiction: str | None = None
    status: ReportStatus | None = None
    date_from: datetime | None = None  # Inclusive, on generated_at
    date_to: datetime | None = None  # Inclusive, on generated_at

    def __post_init__(self):
        self.date_from = ensure_aware(self.date_from)
        self.date_to = ensure_aware(self.date_to)

    def matches(self, report: ComplianceReport) -> bool:
        if self.report_type is not None and report.report_type != ReportType(self.report_type):
            return False
        if self.jurisdiction is not None and report.jurisdiction != self.jurisdiction:
            return False
        if self.status is not None and report.status != ReportStatus(self.status):
            return False
        if self.date_from is not None and report.generated_at < self.date_from:
            return False
        if self.date_to is not None and report.generated_at > self.date_to:
            return False
        return True


class ReportLifecycleManager:
    """
    Creates reports from gathered data and moves them through their lifecycle.

    Each report type has its own DataGatherer; a type without one cannot be
    generated.
    """

    def __init__(
        self,
        repository: ComplianceRepository,
        gatherers: dict[ReportType, DataGatherer],
        timeout_seconds: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._gatherers = dict(gatherers)
        self._timeout = timeout_seconds
        self._clock = clock

    def register_gatherer(self, report_type: ReportType, gatherer: DataGatherer) -> None:
        self._gatherers[ReportType(report_type)] = gatherer

    async def generate_report(
        self,
        report_type: ReportType,
        jurisdiction: str,
        period: ReportingPeriod,
        created_by: str,
    ) -> ComplianceReport:
        """
        Gather data and store a new report.

        Args:
            report_type: Kind of report to produce
            jurisdiction: Jurisdiction code, e.g. "US"
            period: Calendar range the report covers
            created_by: Requesting user, or "system" for scheduled runs

        Returns:
            The stored report (draft, or approved for auto-approve types)

        Raises:
            ConfigurationError: No gatherer registered for the type
            DataGatheringError: The gatherer failed
            CollaboratorTimeoutError: The gatherer exceeded the timeout
        """
        report_type = ReportType(report_type)
        gatherer = self._gatherers.get(report_type)
        if gatherer is None:
            raise ConfigurationError(f"No data gatherer registered for report type {report_type.value}")

        try:
            data = await call_with_timeout(
                gatherer.gather(jurisdiction, period),
                f"{report_type.value}_gatherer",
                self._timeout,
            )
        except CollaboratorError:
            raise
        except Exception as e:
            raise DataGatheringError(
                f"Data gathering failed for {report_type.value} ({jurisdiction}): {e}",
                collaborator=f"{report_type.value}_gatherer",
            ) from e

        report = ComplianceReport(
            report_id=new_id("rpt"),
            report_type=report_type,
            jurisdiction=jurisdiction,
            reporting_period=period,
            created_by=created_by,
            data=data,
            generated_at=self._clock(),
        )
        self._repository.save_report(report)

        logger.info(
            f"Generated {report_type.value} report {report.report_id} for {jurisdiction} "
            f"({period.start} to {period.end}) by {created_by}"
        )

        if report_type in AUTO_APPROVE_REPORT_TYPES:
            report = self.approve_report(report.report_id, SYSTEM_USER) or report

        return report

    def get_report(self, report_id: str) -> ComplianceReport | None:
        return self._repository.get_report(report_id)

    def approve_report(self, report_id: str, approved_by: str) -> ComplianceReport | None:
        """
        Approve a report.

        Returns:
            The approved report, or None when the id is unknown

        Raises:
            InvalidTransitionError: The report has already been submitted
        """
        report = self._repository.get_report(report_id)
        if report is None:
            logger.warning(f"Cannot approve unknown report {report_id}")
            return None

        if report.status not in _APPROVABLE_STATUSES:
            raise InvalidTransitionError(report_id, report.status.value, ReportStatus.APPROVED.value)

        report.status = ReportStatus.APPROVED
        report.approved_by = approved_by
        report.metadata["approved_at"] = self._clock().isoformat()
        self._repository.save_report(report)

        logger.info(f"Report {report_id} approved by {approved_by}")
        return report

    def submit_for_review(self, report_id: str, reviewer: str) -> ComplianceReport | None:
        """Hand a draft to a reviewer."""
        report = self._load_for_transition(report_id, ReportStatus.REVIEW, {ReportStatus.DRAFT})
        if report is None:
            return None
        report.status = ReportStatus.REVIEW
        report.reviewed_by = reviewer
        self._repository.save_report(report)
        logger.info(f"Report {report_id} sent for review to {reviewer}")
        return report

    def mark_submitted(self, report_id: str) -> ComplianceReport | None:
        """Record that an approved report went out to the regulator."""
        report = self._load_for_transition(report_id, ReportStatus.SUBMITTED, {ReportStatus.APPROVED})
        if report is None:
            return None
        report.status = ReportStatus.SUBMITTED
        report.submitted_at = self._clock()
        self._repository.save_report(report)
        logger.info(f"Report {report_id} submitted")
        return report

    def record_acceptance(self, report_id: str) -> ComplianceReport | None:
        report = self._load_for_transition(report_id, ReportStatus.ACCEPTED, {ReportStatus.SUBMITTED})
        if report is None:
            return None
        report.status = ReportStatus.ACCEPTED
        report.accepted_at = self._clock()
        self._repository.save_report(report)
        logger.info(f"Report {report_id} accepted by regulator")
        return report

    def record_rejection(self, report_id: str, reason: str) -> ComplianceReport | None:
        report = self._load_for_transition(report_id, ReportStatus.REJECTED, {ReportStatus.SUBMITTED})
        if report is None:
            return None
        report.status = ReportStatus.REJECTED
        report.rejected_at = self._clock()
        report.rejection_reason = reason
        self._repository.save_report(report)
        logger.warning(f"Report {report_id} rejected by regulator: {reason}")
        return report

    def _load_for_transition(
        self,
        report_id: str,
        target: ReportStatus,
        allowed_from: set[ReportStatus],
    ) -> ComplianceReport | None:
        report = self._repository.get_report(report_id)
        if report is None:
            logger.warning(f"Cannot move unknown report {report_id} to {target.value}")
            return None
        if report.status not in allowed_from:
            raise InvalidTransitionError(report_id, report.status.value, target.value)
        return report

    def get_reports(self, report_filter: ReportFilter | None = None) -> list[ComplianceReport]:
        """Reports matching the filter, newest first; ties keep the most recently created first."""
        report_filter = report_filter or ReportFilter()
        matching = [r for r in self._repository.list_reports() if report_filter.matches(r)]
        return sorted(reversed(matching), key=lambda r: r.generated_at, reverse=True)
