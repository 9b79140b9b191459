"""
Compliance Reporting Automation - Core Module
=============================================

Report generation, regulatory filings, compliance alerts, transaction
screening and scheduled reporting.
"""

from core.automation import ComplianceReportingAutomation
from core.config import ComplianceConfig, load_config
from core.exceptions import (
    ComplianceError,
    ConfigurationError,
    InvalidTransitionError,
    CollaboratorError,
    CollaboratorTimeoutError,
    DataGatheringError,
    FilingSubmissionError,
    RegulatorGatewayError,
    ScreeningError,
)
from core.models import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    ComplianceAlert,
    ComplianceReport,
    ComplianceSchedule,
    FilingStatus,
    FilingType,
    RegulatoryFiling,
    ReportingPeriod,
    ReportStatus,
    ReportType,
    ScheduleFrequency,
)
from core.report_lifecycle import ReportFilter
from core.filing_submission import FilingFilter
from core.transaction_compliance import ComplianceCheckResult

__all__ = [
    # Facade
    "ComplianceReportingAutomation",
    "ComplianceConfig",
    "load_config",
    # Errors
    "ComplianceError",
    "ConfigurationError",
    "InvalidTransitionError",
    "CollaboratorError",
    "CollaboratorTimeoutError",
    "DataGatheringError",
    "FilingSubmissionError",
    "RegulatorGatewayError",
    "ScreeningError",
    # Model
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "ComplianceAlert",
    "ComplianceReport",
    "ComplianceSchedule",
    "FilingStatus",
    "FilingType",
    "RegulatoryFiling",
    "ReportingPeriod",
    "ReportStatus",
    "ReportType",
    "ScheduleFrequency",
    # Queries
    "ReportFilter",
    "FilingFilter",
    "ComplianceCheckResult",
]
