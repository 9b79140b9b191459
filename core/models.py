"""
Compliance Data Model
=====================

Reports, regulatory filings, alerts and schedules handled by the
compliance reporting engine.

All timestamps are timezone-aware datetimes. Every entity serializes to a
plain dict (``to_dict``) and back (``from_dict``) so repository backends can
store it as JSON.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so they compare with stored timestamps."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def new_id(prefix: str) -> str:
    """Generate an entity id with a human-readable prefix (rpt_, fil_, alt_, sch_)."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ReportType(str, Enum):
    """Types of compliance reports."""
    SAR = "sar"  # Suspicious Activity Report
    CTR = "ctr"  # Currency Transaction Report
    STR = "str"  # Suspicious Transaction Report
    MIFIR = "mifir"  # Cross-border / MiFIR transaction report
    AML = "aml"
    AUDIT = "audit"
    TRANSACTION_MONITORING = "transaction_monitoring"


class ReportStatus(str, Enum):
    """Report lifecycle status."""
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FilingType(str, Enum):
    """Types of regulatory filings."""
    FINCEN_SAR = "fincen_sar"
    FINCEN_CTR = "fincen_ctr"
    EU_MIFIR = "eu_mifir"
    AML_REPORT = "aml_report"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


class FilingStatus(str, Enum):
    """Filing lifecycle status."""
    PREPARING = "preparing"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNDER_REVIEW = "under_review"


class AlertType(str, Enum):
    """Compliance alert categories."""
    SUSPICIOUS_TRANSACTION = "suspicious_transaction"
    PEP_MATCH = "pep_match"
    SANCTIONS_MATCH = "sanctions_match"
    THRESHOLD_BREACH = "threshold_breach"
    COMPLIANCE_VIOLATION = "compliance_violation"


class AlertSeverity(str, Enum):
    """Alert severity levels, totally ordered by ``rank``."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AlertSeverity.LOW: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.HIGH: 3,
    AlertSeverity.CRITICAL: 4,
}


class AlertStatus(str, Enum):
    """Alert triage status."""
    ACTIVE = "active"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ScheduleFrequency(str, Enum):
    """Recurrence of a compliance schedule."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class NotificationKind(str, Enum):
    """What a notification is about."""
    ALERT = "alert"
    SCHEDULE_DUE = "schedule_due"


# Report types whose generation skips human review
AUTO_APPROVE_REPORT_TYPES = frozenset({ReportType.AUDIT, ReportType.TRANSACTION_MONITORING})

# Filing produced when a scheduled report is auto-submitted
REPORT_FILING_TYPES: dict[ReportType, FilingType] = {
    ReportType.SAR: FilingType.FINCEN_SAR,
    ReportType.CTR: FilingType.FINCEN_CTR,
    ReportType.MIFIR: FilingType.EU_MIFIR,
    ReportType.AML: FilingType.AML_REPORT,
    ReportType.STR: FilingType.SUSPICIOUS_ACTIVITY,
}


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ReportingPeriod:
    """Inclusive calendar-date range covered by a report."""
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Reporting period start {self.start} is after end {self.end}")

    def to_dict(self) -> dict:
        return {"start_date": self.start.isoformat(), "end_date": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: dict) -> ReportingPeriod:
        return cls(
            start=date.fromisoformat(data["start_date"]),
            end=date.fromisoformat(data["end_date"]),
        )


@dataclass
class ComplianceReport:
    """A generated regulatory document."""
    report_id: str
    report_type: ReportType
    jurisdiction: str
    reporting_period: ReportingPeriod
    created_by: str
    status: ReportStatus = ReportStatus.DRAFT
    data: dict[str, Any] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=utc_now)

    submitted_at: datetime | None = None
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None

    reviewed_by: str | None = None
    approved_by: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "report_id": self.report_id,
            "report_type": self.report_type.value,
            "jurisdiction": self.jurisdiction,
            "reporting_period": self.reporting_period.to_dict(),
            "status": self.status.value,
            "data": self.data,
            "generated_at": self.generated_at.isoformat(),
            "submitted_at": _iso(self.submitted_at),
            "accepted_at": _iso(self.accepted_at),
            "rejected_at": _iso(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "created_by": self.created_by,
            "reviewed_by": self.reviewed_by,
            "approved_by": self.approved_by,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ComplianceReport:
        return cls(
            report_id=data["report_id"],
            report_type=ReportType(data["report_type"]),
            jurisdiction=data["jurisdiction"],
            reporting_period=ReportingPeriod.from_dict(data["reporting_period"]),
            created_by=data["created_by"],
            status=ReportStatus(data.get("status", "draft")),
            data=data.get("data", {}),
            generated_at=datetime.fromisoformat(data["generated_at"]),
            submitted_at=_parse_dt(data.get("submitted_at")),
            accepted_at=_parse_dt(data.get("accepted_at")),
            rejected_at=_parse_dt(data.get("rejected_at")),
            rejection_reason=data.get("rejection_reason"),
            reviewed_by=data.get("reviewed_by"),
            approved_by=data.get("approved_by"),
            metadata=data.get("metadata", {}),
        )


@dataclass
class FilingAttachment:
    """Document attached to a regulatory filing."""
    attachment_id: str
    filename: str
    file_url: str
    uploaded_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "attachment_id": self.attachment_id,
            "filename": self.filename,
            "file_url": self.file_url,
            "uploaded_at": self.uploaded_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> FilingAttachment:
        return cls(
            attachment_id=data["attachment_id"],
            filename=data["filename"],
            file_url=data["file_url"],
            uploaded_at=datetime.fromisoformat(data["uploaded_at"]),
        )


@dataclass
class RegulatoryFiling:
    """A submission package sent to an external regulator."""
    filing_id: str
    filing_type: FilingType
    data: dict[str, Any] = field(default_factory=dict)
    status: FilingStatus = FilingStatus.PREPARING
    reference_number: str | None = None  # Assigned by the regulator
    submitted_by: str = ""

    submission_date: datetime | None = None
    acceptance_date: datetime | None = None
    rejection_date: datetime | None = None
    rejection_reason: str | None = None

    attachments: list[FilingAttachment] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "filing_id": self.filing_id,
            "filing_type": self.filing_type.value,
            "reference_number": self.reference_number,
            "status": self.status.value,
            "submitted_by": self.submitted_by,
            "submission_date": _iso(self.submission_date),
            "acceptance_date": _iso(self.acceptance_date),
            "rejection_date": _iso(self.rejection_date),
            "rejection_reason": self.rejection_reason,
            "data": self.data,
            "attachments": [a.to_dict() for a in self.attachments],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> RegulatoryFiling:
        return cls(
            filing_id=data["filing_id"],
            filing_type=FilingType(data["filing_type"]),
            data=data.get("data", {}),
            status=FilingStatus(data.get("status", "preparing")),
            reference_number=data.get("reference_number"),
            submitted_by=data.get("submitted_by", ""),
            submission_date=_parse_dt(data.get("submission_date")),
            acceptance_date=_parse_dt(data.get("acceptance_date")),
            rejection_date=_parse_dt(data.get("rejection_date")),
            rejection_reason=data.get("rejection_reason"),
            attachments=[FilingAttachment.from_dict(a) for a in data.get("attachments", [])],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass
class ComplianceAlert:
    """A flagged condition requiring follow-up."""
    alert_id: str
    alert_type: AlertType
    severity: AlertSeverity
    description: str
    details: dict[str, Any] = field(default_factory=dict)
    customer_id: str | None = None
    transaction_id: str | None = None
    status: AlertStatus = AlertStatus.ACTIVE
    assigned_to: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    resolved_at: datetime | None = None
    resolution: str | None = None
    follow_up_actions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "alert_type": self.alert_type.value,
            "severity": self.severity.value,
            "customer_id": self.customer_id,
            "transaction_id": self.transaction_id,
            "description": self.description,
            "details": self.details,
            "status": self.status.value,
            "assigned_to": self.assigned_to,
            "created_at": self.created_at.isoformat(),
            "resolved_at": _iso(self.resolved_at),
            "resolution": self.resolution,
            "follow_up_actions": list(self.follow_up_actions),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ComplianceAlert:
        return cls(
            alert_id=data["alert_id"],
            alert_type=AlertType(data["alert_type"]),
            severity=AlertSeverity(data["severity"]),
            description=data["description"],
            details=data.get("details", {}),
            customer_id=data.get("customer_id"),
            transaction_id=data.get("transaction_id"),
            status=AlertStatus(data.get("status", "active")),
            assigned_to=data.get("assigned_to"),
            created_at=datetime.fromisoformat(data["created_at"]),
            resolved_at=_parse_dt(data.get("resolved_at")),
            resolution=data.get("resolution"),
            follow_up_actions=list(data.get("follow_up_actions", [])),
        )


@dataclass
class ComplianceSchedule:
    """Recurring obligation to produce a report type for a jurisdiction."""
    schedule_id: str
    report_type: ReportType
    jurisdiction: str
    frequency: ScheduleFrequency
    due_day: int  # Day of week (0=Sunday) for weekly, day of month otherwise
    due_time: str  # "HH:MM"
    next_due: datetime
    auto_generate: bool = True
    auto_submit: bool = False
    notification_days: list[int] = field(default_factory=list)
    last_generated: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "schedule_id": self.schedule_id,
            "report_type": self.report_type.value,
            "jurisdiction": self.jurisdiction,
            "frequency": self.frequency.value,
            "due_day": self.due_day,
            "due_time": self.due_time,
            "auto_generate": self.auto_generate,
            "auto_submit": self.auto_submit,
            "notification_days": list(self.notification_days),
            "last_generated": _iso(self.last_generated),
            "next_due": self.next_due.isoformat(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ComplianceSchedule:
        return cls(
            schedule_id=data["schedule_id"],
            report_type=ReportType(data["report_type"]),
            jurisdiction=data["jurisdiction"],
            frequency=ScheduleFrequency(data["frequency"]),
            due_day=int(data["due_day"]),
            due_time=data["due_time"],
            next_due=datetime.fromisoformat(data["next_due"]),
            auto_generate=data.get("auto_generate", True),
            auto_submit=data.get("auto_submit", False),
            notification_days=list(data.get("notification_days", [])),
            last_generated=_parse_dt(data.get("last_generated")),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass
class Notification:
    """Payload handed to a Notifier."""
    kind: NotificationKind
    severity: AlertSeverity
    title: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }
