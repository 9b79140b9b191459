"""
Pytest Configuration
====================

Shared fixtures for testing.
"""

from datetime import date

import pytest

from core.alert_engine import AlertEngine
from core.automation import ComplianceReportingAutomation
from core.collaborators import default_gatherers
from core.config import ComplianceConfig
from core.models import ReportingPeriod
from core.notifications import NotificationDispatcher
from core.repository import InMemoryComplianceRepository

from tests.fixtures import MutableClock, RecordingNotifier


@pytest.fixture
def clock():
    """Clock fixed at Wednesday 2024-03-13 10:00 UTC."""
    return MutableClock()


@pytest.fixture
def recording_notifier():
    return RecordingNotifier()


@pytest.fixture
def repository():
    return InMemoryComplianceRepository()


@pytest.fixture
def dispatcher(recording_notifier):
    return NotificationDispatcher(recording_notifier)


@pytest.fixture
def alert_engine(repository, dispatcher, clock):
    return AlertEngine(repository, dispatcher, clock=clock)


@pytest.fixture
def gatherers():
    return default_gatherers(lei_code="5493006MHB84DD0ZWV18")


@pytest.fixture
def period():
    """February 2024."""
    return ReportingPeriod(start=date(2024, 2, 1), end=date(2024, 2, 29))


@pytest.fixture
def compliance_config():
    """Default configuration: AML and monitoring on, screening off."""
    return ComplianceConfig()


@pytest.fixture
def automation(compliance_config, recording_notifier, clock):
    """In-memory engine with stub collaborators and a fixed clock."""
    return ComplianceReportingAutomation(
        config=compliance_config,
        notifier=recording_notifier,
        clock=clock,
    )
