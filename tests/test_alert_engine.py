"""
Tests for Alert Engine
======================

Alert creation, escalation, ordering and triage transitions.
"""

import pytest

from core.alert_engine import ESCALATION_TARGET, FOLLOW_UP_ACTIONS, AlertEngine
from core.exceptions import InvalidTransitionError
from core.models import AlertSeverity, AlertStatus, AlertType, NotificationKind
from core.notifications import NotificationDispatcher

from tests.fixtures import FailingNotifier


class TestCreateAlert:
    """Test alert creation."""

    @pytest.mark.asyncio
    async def test_low_alert_defaults(self, alert_engine, repository):
        alert = await alert_engine.create_alert(
            AlertType.THRESHOLD_BREACH,
            AlertSeverity.LOW,
            "Deposit near threshold",
            {"amount": 9500},
            customer_id="cust_1",
        )

        assert alert.alert_id.startswith("alt_")
        assert alert.status == AlertStatus.ACTIVE
        assert alert.assigned_to is None
        assert alert.follow_up_actions == ["Log for future reference"]
        assert alert.customer_id == "cust_1"
        assert alert.transaction_id is None
        assert repository.get_alert(alert.alert_id) is alert

    @pytest.mark.asyncio
    @pytest.mark.parametrize("severity", list(AlertSeverity))
    async def test_follow_up_actions_by_severity(self, alert_engine, severity):
        alert = await alert_engine.create_alert(AlertType.COMPLIANCE_VIOLATION, severity, "x")
        assert alert.follow_up_actions == list(FOLLOW_UP_ACTIONS[severity])

    @pytest.mark.asyncio
    async def test_critical_alert_is_escalated(self, alert_engine):
        alert = await alert_engine.create_alert(
            AlertType.SANCTIONS_MATCH,
            AlertSeverity.CRITICAL,
            "Sanctions list match detected",
        )

        assert alert.assigned_to == ESCALATION_TARGET == "compliance_team"
        assert alert.follow_up_actions == [
            "Immediate investigation required",
            "Freeze related accounts",
            "Notify regulatory authorities",
        ]

    @pytest.mark.asyncio
    async def test_high_alert_is_not_escalated(self, alert_engine):
        alert = await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "PEP")
        assert alert.assigned_to is None

    @pytest.mark.asyncio
    async def test_accepts_string_enums(self, alert_engine):
        alert = await alert_engine.create_alert("pep_match", "high", "PEP")
        assert alert.alert_type == AlertType.PEP_MATCH
        assert alert.severity == AlertSeverity.HIGH

    @pytest.mark.asyncio
    async def test_notification_dispatched(self, alert_engine, dispatcher, recording_notifier):
        alert = await alert_engine.create_alert(
            AlertType.SUSPICIOUS_TRANSACTION,
            AlertSeverity.MEDIUM,
            "Suspicious transaction pattern detected: large_withdrawal",
            transaction_id="txn_9",
        )
        await dispatcher.drain()

        assert len(recording_notifier.notifications) == 1
        notification = recording_notifier.notifications[0]
        assert notification.kind == NotificationKind.ALERT
        assert notification.severity == AlertSeverity.MEDIUM
        assert notification.details["alert_id"] == alert.alert_id
        assert notification.details["transaction_id"] == "txn_9"

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_fail_creation(self, repository, clock):
        dispatcher = NotificationDispatcher(FailingNotifier())
        engine = AlertEngine(repository, dispatcher, clock=clock)

        alert = await engine.create_alert(AlertType.SANCTIONS_MATCH, AlertSeverity.CRITICAL, "hit")
        await dispatcher.drain()

        assert repository.get_alert(alert.alert_id) is not None
        assert dispatcher.get_statistics()["failed"] == 1


class TestActiveAlerts:
    """Test active alert ordering."""

    @pytest.mark.asyncio
    async def test_sorted_by_severity_then_creation(self, alert_engine, clock):
        for severity, label in [
            (AlertSeverity.LOW, "low"),
            (AlertSeverity.MEDIUM, "medium-1"),
            (AlertSeverity.CRITICAL, "critical"),
            (AlertSeverity.HIGH, "high"),
            (AlertSeverity.MEDIUM, "medium-2"),
        ]:
            clock.advance(minutes=1)
            await alert_engine.create_alert(AlertType.COMPLIANCE_VIOLATION, severity, label)

        ordered = [a.description for a in alert_engine.get_active_alerts()]
        assert ordered == ["critical", "high", "medium-1", "medium-2", "low"]

    @pytest.mark.asyncio
    async def test_closed_alerts_excluded(self, alert_engine):
        keep = await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "keep")
        closed = await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "closed")
        investigating = await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "busy")

        alert_engine.resolve_alert(closed.alert_id, "false positive")
        alert_engine.start_investigation(investigating.alert_id)

        assert [a.alert_id for a in alert_engine.get_active_alerts()] == [keep.alert_id]

    def test_empty(self, alert_engine):
        assert alert_engine.get_active_alerts() == []


class TestAlertTriage:
    """Test assignment and status transitions."""

    @pytest.mark.asyncio
    async def test_assign_alert(self, alert_engine):
        alert = await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "PEP")
        updated = alert_engine.assign_alert(alert.alert_id, "analyst_7")
        assert updated.assigned_to == "analyst_7"
        assert alert_engine.get_alert(alert.alert_id).assigned_to == "analyst_7"

    def test_assign_unknown_alert_returns_none(self, alert_engine, caplog):
        assert alert_engine.assign_alert("alt_missing", "analyst_7") is None
        assert "alt_missing" in caplog.text

    @pytest.mark.asyncio
    async def test_investigate_then_resolve(self, alert_engine, clock):
        alert = await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "PEP")

        investigating = alert_engine.start_investigation(alert.alert_id, investigator="analyst_7")
        assert investigating.status == AlertStatus.INVESTIGATING
        assert investigating.assigned_to == "analyst_7"
        assert investigating.resolved_at is None

        clock.advance(hours=2)
        resolved = alert_engine.resolve_alert(alert.alert_id, "Customer verified, documented")
        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolution == "Customer verified, documented"
        assert resolved.resolved_at == clock.now

    @pytest.mark.asyncio
    async def test_dismiss(self, alert_engine):
        alert = await alert_engine.create_alert(AlertType.THRESHOLD_BREACH, AlertSeverity.LOW, "noise")
        dismissed = alert_engine.dismiss_alert(alert.alert_id, "Duplicate")
        assert dismissed.status == AlertStatus.DISMISSED
        assert dismissed.resolved_at is not None

    @pytest.mark.asyncio
    async def test_closed_alert_cannot_reopen(self, alert_engine):
        alert = await alert_engine.create_alert(AlertType.THRESHOLD_BREACH, AlertSeverity.LOW, "x")
        alert_engine.resolve_alert(alert.alert_id, "done")

        with pytest.raises(InvalidTransitionError):
            alert_engine.start_investigation(alert.alert_id)
        with pytest.raises(InvalidTransitionError):
            alert_engine.dismiss_alert(alert.alert_id, "again")

    def test_transition_unknown_alert_returns_none(self, alert_engine):
        assert alert_engine.resolve_alert("alt_missing", "done") is None

    @pytest.mark.asyncio
    async def test_statistics(self, alert_engine):
        await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "a")
        await alert_engine.create_alert(AlertType.SANCTIONS_MATCH, AlertSeverity.CRITICAL, "b")

        stats = alert_engine.get_statistics()
        assert stats["total_alerts"] == 2
        assert stats["by_severity"]["critical"] == 1
        assert stats["by_status"]["active"] == 2

    @pytest.mark.asyncio
    async def test_get_alerts_by_status(self, alert_engine):
        a = await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "a")
        await alert_engine.create_alert(AlertType.PEP_MATCH, AlertSeverity.HIGH, "b")
        alert_engine.dismiss_alert(a.alert_id, "n/a")

        assert [x.description for x in alert_engine.get_alerts()] == ["a", "b"]
        assert [x.description for x in alert_engine.get_alerts(AlertStatus.DISMISSED)] == ["a"]
