"""
Tests for Configuration
=======================

YAML loading and validation of the engine configuration.
"""

import logging
from pathlib import Path

import pytest

from core.config import ComplianceConfig, load_config
from core.exceptions import ConfigurationError
from core.models import AlertSeverity, ReportType, ScheduleFrequency

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config.yaml"


class TestDefaults:
    def test_empty_config_uses_defaults(self):
        config = ComplianceConfig.from_dict({})

        assert config.enabled is True
        assert config.reporting_jurisdictions == ["US"]
        assert config.aml_reporting.enabled is True
        assert config.aml_reporting.threshold_amount == 10000.0
        assert config.transaction_monitoring.suspicious_activity_threshold == 10000.0
        assert config.transaction_monitoring.pep_monitoring is False
        assert config.transaction_monitoring.sanctions_screening is False
        assert config.audit.retention_period_days == 2555
        assert config.scheduler.tick_interval_seconds == 3600.0
        assert config.scheduler.timezone == "UTC"
        assert config.collaborators.timeout_seconds is None
        assert config.collaborators.submission_attempts == 1
        assert config.persistence.backend == "memory"
        assert config.notifications.webhook_min_severity == AlertSeverity.HIGH

    def test_none_is_empty(self):
        assert ComplianceConfig.from_dict(None) == ComplianceConfig()

    def test_repository_config_file_loads(self):
        config = load_config(REPO_CONFIG)

        assert config.scheduler.tick_interval_seconds == 900
        assert config.notifications.file_path == "logs/compliance_notifications.jsonl"
        assert config.notifications.webhook_url is None
        assert config.logging.log_file == "logs/compliance.log"


class TestLoadConfig:
    """Test loading YAML files."""

    def test_full_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            """
compliance:
  reporting_jurisdictions: ["US", "UK"]
eu_mifir:
  enabled: true
  lei_code: 5493006MHB84DD0ZWV18
aml_reporting:
  threshold_amount: 5000
  reporting_frequency: weekly
transaction_monitoring:
  pep_monitoring: true
  sanctions_screening: true
scheduler:
  tick_interval_seconds: 60
  timezone: America/New_York
  seed_default_schedules: false
  schedules:
    - report_type: sar
      jurisdiction: US
      frequency: quarterly
      due_day: 10
      due_time: "08:00"
      notification_days: [14, 7]
      auto_submit: true
collaborators:
  timeout_seconds: 5
  submission_attempts: 3
notifications:
  webhook:
    url: https://hooks.example.com/compliance
    min_severity: critical
persistence:
  backend: sqlite
  db_path: /tmp/compliance.db
logging:
  level: debug
""",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.reporting_jurisdictions == ["US", "UK"]
        assert config.eu_mifir.lei_code == "5493006MHB84DD0ZWV18"
        assert config.aml_reporting.threshold_amount == 5000.0
        assert config.aml_reporting.reporting_frequency == ScheduleFrequency.WEEKLY
        assert config.transaction_monitoring.pep_monitoring is True
        assert config.scheduler.tzinfo.key == "America/New_York"
        assert config.scheduler.seed_default_schedules is False

        schedule = config.scheduler.schedules[0]
        assert schedule.report_type == ReportType.SAR
        assert schedule.frequency == ScheduleFrequency.QUARTERLY
        assert schedule.due_time == "08:00"
        assert schedule.notification_days == [14, 7]
        assert schedule.auto_submit is True
        assert schedule.auto_generate is True

        assert config.collaborators.timeout_seconds == 5.0
        assert config.collaborators.submission_attempts == 3
        assert config.notifications.webhook_url == "https://hooks.example.com/compliance"
        assert config.notifications.webhook_min_severity == AlertSeverity.CRITICAL
        assert config.persistence.backend == "sqlite"
        assert config.logging.root_level == logging.DEBUG

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("scheduler: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == ComplianceConfig()


class TestValidation:
    """Test rejection of malformed configuration."""

    @pytest.mark.parametrize("data", [
        {"aml_reporting": {"reporting_frequency": "hourly"}},
        {"aml_reporting": {"reporting_frequency": "quarterly"}},
        {"aml_reporting": {"threshold_amount": -1}},
        {"transaction_monitoring": {"suspicious_activity_threshold": "lots"}},
        {"fincen": {"environment": "staging"}},
        {"scheduler": {"timezone": "Mars/Olympus_Mons"}},
        {"scheduler": {"tick_interval_seconds": 0}},
        {"collaborators": {"submission_attempts": 0}},
        {"collaborators": {"timeout_seconds": -5}},
        {"notifications": {"log": {"min_severity": "urgent"}}},
        {"persistence": {"backend": "postgres"}},
        {"logging": {"level": "LOUD"}},
        {"compliance": {"reporting_jurisdictions": "US"}},
        {"scheduler": "daily"},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ConfigurationError):
            ComplianceConfig.from_dict(data)

    @pytest.mark.parametrize("schedule", [
        {"jurisdiction": "US", "frequency": "monthly", "due_day": 15},
        {"report_type": "sar", "jurisdiction": "US", "frequency": "monthly", "due_day": 32},
        {"report_type": "sar", "jurisdiction": "US", "frequency": "weekly", "due_day": 7},
        {"report_type": "sar", "jurisdiction": "US", "frequency": "monthly", "due_day": 1, "due_time": "25:00"},
        {"report_type": "sar", "jurisdiction": "US", "frequency": "monthly", "due_day": 1,
         "notification_days": [-1]},
        {"report_type": "wire", "jurisdiction": "US", "frequency": "monthly", "due_day": 1},
    ])
    def test_invalid_schedules(self, schedule):
        with pytest.raises(ConfigurationError):
            ComplianceConfig.from_dict({"scheduler": {"schedules": [schedule]}})

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ComplianceConfig.from_dict({"persistence": {"backend": "postgres"}})

    def test_error_message_names_the_field(self):
        with pytest.raises(ConfigurationError, match="scheduler.schedules\\[0\\]"):
            ComplianceConfig.from_dict({"scheduler": {"schedules": [{"report_type": "sar"}]}})
