"""
Compliance Configuration
========================

Typed view of config.yaml.

Sections:
- Regulator programs: fincen, ofac, eu_mifir
- Checks: aml_reporting, transaction_monitoring, audit
- Runtime: scheduler, collaborators, notifications, persistence, logging

Every section has defaults so an empty file yields a working in-memory
engine. Invalid values raise ConfigurationError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from core.exceptions import ConfigurationError
from core.logging_config import LoggingConfig
from core.models import AlertSeverity, ReportType, ScheduleFrequency
from core.schedule_calculator import parse_due_time, validate_due_day

logger = logging.getLogger(__name__)


_ENVIRONMENTS = ("test", "production")


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping, got {type(value).__name__}")
    return value


def _environment(section: str, value: str) -> str:
    if value not in _ENVIRONMENTS:
        raise ConfigurationError(f"{section}.environment must be one of {_ENVIRONMENTS}, got '{value}'")
    return value


def _enum(enum_cls, value: Any, path: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"{path}: '{value}' is not one of {allowed}") from None


def _non_negative(value: Any, path: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{path} must be a number, got {value!r}") from None
    if number < 0:
        raise ConfigurationError(f"{path} must be >= 0, got {number}")
    return number


@dataclass
class RegulatorProgramConfig:
    """
    FinCEN / OFAC credentials and target environment.

    Parsed and validated so deployment configs keep their shape; no engine
    component reads it. Submissions go through ``collaborators.regulator_endpoint``.
    """
    enabled: bool = False
    api_key: str | None = None
    environment: str = "test"

    @classmethod
    def from_dict(cls, data: dict[str, Any], section: str) -> RegulatorProgramConfig:
        return cls(
            enabled=bool(data.get("enabled", False)),
            api_key=data.get("api_key"),
            environment=_environment(section, data.get("environment", "test")),
        )


@dataclass
class EUMifirConfig:
    enabled: bool = False
    lei_code: str | None = None  # Legal Entity Identifier stamped on MiFIR reports
    environment: str = "test"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EUMifirConfig:
        return cls(
            enabled=bool(data.get("enabled", False)),
            lei_code=data.get("lei_code"),
            environment=_environment("eu_mifir", data.get("environment", "test")),
        )


@dataclass
class AMLReportingConfig:
    enabled: bool = True
    threshold_amount: float = 10000.0
    reporting_frequency: ScheduleFrequency = ScheduleFrequency.MONTHLY

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AMLReportingConfig:
        frequency = _enum(
            ScheduleFrequency,
            data.get("reporting_frequency", "monthly"),
            "aml_reporting.reporting_frequency",
        )
        if frequency not in (ScheduleFrequency.DAILY, ScheduleFrequency.WEEKLY, ScheduleFrequency.MONTHLY):
            raise ConfigurationError("aml_reporting.reporting_frequency must be daily, weekly or monthly")
        return cls(
            enabled=bool(data.get("enabled", True)),
            threshold_amount=_non_negative(data.get("threshold_amount", 10000), "aml_reporting.threshold_amount"),
            reporting_frequency=frequency,
        )


@dataclass
class TransactionMonitoringConfig:
    enabled: bool = True
    suspicious_activity_threshold: float = 10000.0
    pep_monitoring: bool = False
    sanctions_screening: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionMonitoringConfig:
        return cls(
            enabled=bool(data.get("enabled", True)),
            suspicious_activity_threshold=_non_negative(
                data.get("suspicious_activity_threshold", 10000),
                "transaction_monitoring.suspicious_activity_threshold",
            ),
            pep_monitoring=bool(data.get("pep_monitoring", False)),
            sanctions_screening=bool(data.get("sanctions_screening", False)),
        )


@dataclass
class AuditConfig:
    """``automated_audits`` seeds a monthly audit schedule. Retention is recorded but not enforced."""
    enabled: bool = True
    retention_period_days: int = 2555  # 7 years
    automated_audits: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditConfig:
        return cls(
            enabled=bool(data.get("enabled", True)),
            retention_period_days=int(_non_negative(
                data.get("retention_period_days", 2555), "audit.retention_period_days"
            )),
            automated_audits=bool(data.get("automated_audits", False)),
        )


@dataclass
class ScheduleDefinition:
    """A schedule declared in config, created at startup."""
    report_type: ReportType
    jurisdiction: str
    frequency: ScheduleFrequency
    due_day: int
    due_time: str = "09:00"
    auto_generate: bool = True
    auto_submit: bool = False
    notification_days: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int) -> ScheduleDefinition:
        path = f"scheduler.schedules[{index}]"
        for key in ("report_type", "jurisdiction", "frequency", "due_day"):
            if key not in data:
                raise ConfigurationError(f"{path}: missing '{key}'")

        frequency = _enum(ScheduleFrequency, data["frequency"], f"{path}.frequency")
        due_day = int(data["due_day"])
        due_time = str(data.get("due_time", "09:00"))
        validate_due_day(frequency, due_day)
        parse_due_time(due_time)

        notification_days = [int(d) for d in data.get("notification_days", [])]
        if any(d < 0 for d in notification_days):
            raise ConfigurationError(f"{path}.notification_days must be >= 0")

        return cls(
            report_type=_enum(ReportType, data["report_type"], f"{path}.report_type"),
            jurisdiction=str(data["jurisdiction"]),
            frequency=frequency,
            due_day=due_day,
            due_time=due_time,
            auto_generate=bool(data.get("auto_generate", True)),
            auto_submit=bool(data.get("auto_submit", False)),
            notification_days=notification_days,
        )


@dataclass
class SchedulerConfig:
    enabled: bool = True
    tick_interval_seconds: float = 3600.0
    timezone: str = "UTC"
    seed_default_schedules: bool = True
    schedules: list[ScheduleDefinition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchedulerConfig:
        tick_interval = _non_negative(data.get("tick_interval_seconds", 3600), "scheduler.tick_interval_seconds")
        if tick_interval == 0:
            raise ConfigurationError("scheduler.tick_interval_seconds must be > 0")

        tz_name = data.get("timezone", "UTC")
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown scheduler.timezone: '{tz_name}'") from None

        return cls(
            enabled=bool(data.get("enabled", True)),
            tick_interval_seconds=tick_interval,
            timezone=tz_name,
            seed_default_schedules=bool(data.get("seed_default_schedules", True)),
            schedules=[
                ScheduleDefinition.from_dict(item, i)
                for i, item in enumerate(data.get("schedules") or [])
            ],
        )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class CollaboratorsConfig:
    """Timeouts, retries and optional HTTP endpoints of external collaborators."""
    timeout_seconds: float | None = None
    submission_attempts: int = 1
    retry_initial_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 60.0
    regulator_endpoint: str | None = None
    regulator_api_key: str | None = None
    pep_endpoint: str | None = None
    sanctions_endpoint: str | None = None
    screening_api_key: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CollaboratorsConfig:
        timeout = data.get("timeout_seconds")
        attempts = int(data.get("submission_attempts", 1))
        if attempts < 1:
            raise ConfigurationError("collaborators.submission_attempts must be >= 1")
        return cls(
            timeout_seconds=None if timeout is None else _non_negative(timeout, "collaborators.timeout_seconds"),
            submission_attempts=attempts,
            retry_initial_delay_seconds=_non_negative(
                data.get("retry_initial_delay_seconds", 1.0), "collaborators.retry_initial_delay_seconds"
            ),
            retry_max_delay_seconds=_non_negative(
                data.get("retry_max_delay_seconds", 60.0), "collaborators.retry_max_delay_seconds"
            ),
            regulator_endpoint=data.get("regulator_endpoint"),
            regulator_api_key=data.get("regulator_api_key"),
            pep_endpoint=data.get("pep_endpoint"),
            sanctions_endpoint=data.get("sanctions_endpoint"),
            screening_api_key=data.get("screening_api_key"),
        )


@dataclass
class NotificationsConfig:
    log_enabled: bool = True
    log_min_severity: AlertSeverity = AlertSeverity.LOW
    file_path: str | None = None
    file_min_severity: AlertSeverity = AlertSeverity.LOW
    webhook_url: str | None = None
    webhook_min_severity: AlertSeverity = AlertSeverity.HIGH
    webhook_timeout_seconds: float = 10.0
    delivery_timeout_seconds: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationsConfig:
        log = data.get("log") or {}
        file = data.get("file") or {}
        webhook = data.get("webhook") or {}
        delivery_timeout = data.get("delivery_timeout_seconds")
        return cls(
            log_enabled=bool(log.get("enabled", True)),
            log_min_severity=_enum(AlertSeverity, log.get("min_severity", "low"), "notifications.log.min_severity"),
            file_path=file.get("path") if file.get("enabled", bool(file.get("path"))) else None,
            file_min_severity=_enum(AlertSeverity, file.get("min_severity", "low"), "notifications.file.min_severity"),
            webhook_url=webhook.get("url") if webhook.get("enabled", bool(webhook.get("url"))) else None,
            webhook_min_severity=_enum(
                AlertSeverity, webhook.get("min_severity", "high"), "notifications.webhook.min_severity"
            ),
            webhook_timeout_seconds=_non_negative(
                webhook.get("timeout_seconds", 10.0), "notifications.webhook.timeout_seconds"
            ),
            delivery_timeout_seconds=(
                None if delivery_timeout is None
                else _non_negative(delivery_timeout, "notifications.delivery_timeout_seconds")
            ),
        )


@dataclass
class PersistenceConfig:
    backend: str = "memory"  # memory | sqlite
    db_path: str = "state/compliance.db"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersistenceConfig:
        backend = data.get("backend", "memory")
        if backend not in ("memory", "sqlite"):
            raise ConfigurationError(f"persistence.backend must be 'memory' or 'sqlite', got '{backend}'")
        return cls(backend=backend, db_path=data.get("db_path", "state/compliance.db"))


@dataclass
class ComplianceConfig:
    """Complete engine configuration."""
    enabled: bool = True
    reporting_jurisdictions: list[str] = field(default_factory=lambda: ["US"])
    fincen: RegulatorProgramConfig = field(default_factory=RegulatorProgramConfig)
    ofac: RegulatorProgramConfig = field(default_factory=RegulatorProgramConfig)
    eu_mifir: EUMifirConfig = field(default_factory=EUMifirConfig)
    aml_reporting: AMLReportingConfig = field(default_factory=AMLReportingConfig)
    transaction_monitoring: TransactionMonitoringConfig = field(default_factory=TransactionMonitoringConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    collaborators: CollaboratorsConfig = field(default_factory=CollaboratorsConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ComplianceConfig:
        """
        Build the configuration from a parsed YAML mapping.

        Raises:
            ConfigurationError: If any section is malformed
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config root must be a mapping, got {type(data).__name__}")

        compliance = _section(data, "compliance")
        jurisdictions = compliance.get("reporting_jurisdictions", ["US"])
        if not isinstance(jurisdictions, list) or not all(isinstance(j, str) for j in jurisdictions):
            raise ConfigurationError("compliance.reporting_jurisdictions must be a list of strings")

        return cls(
            enabled=bool(compliance.get("enabled", True)),
            reporting_jurisdictions=jurisdictions,
            fincen=RegulatorProgramConfig.from_dict(_section(data, "fincen"), "fincen"),
            ofac=RegulatorProgramConfig.from_dict(_section(data, "ofac"), "ofac"),
            eu_mifir=EUMifirConfig.from_dict(_section(data, "eu_mifir")),
            aml_reporting=AMLReportingConfig.from_dict(_section(data, "aml_reporting")),
            transaction_monitoring=TransactionMonitoringConfig.from_dict(_section(data, "transaction_monitoring")),
            audit=AuditConfig.from_dict(_section(data, "audit")),
            scheduler=SchedulerConfig.from_dict(_section(data, "scheduler")),
            collaborators=CollaboratorsConfig.from_dict(_section(data, "collaborators")),
            notifications=NotificationsConfig.from_dict(_section(data, "notifications")),
            persistence=PersistenceConfig.from_dict(_section(data, "persistence")),
            logging=LoggingConfig.from_dict(_section(data, "logging")),
        )


def load_config(path: str | Path) -> ComplianceConfig:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the YAML is invalid or fails validation
    """
    config_file = Path(path)

    if not config_file.exists():
        logger.error(f"Config file not found: {config_file}")
        raise FileNotFoundError(f"Config file not found: {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    config = ComplianceConfig.from_dict(raw)
    logger.info(f"Loaded configuration from {config_file}")
    return config
