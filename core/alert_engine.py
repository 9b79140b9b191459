"""
Alert Engine
============

Creation and triage of compliance alerts.

- Follow-up actions derived from severity
- Fire-and-forget notification on creation
- Critical alerts auto-assigned to the escalation target
- Active alerts ordered by severity, critical first
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from core.exceptions import InvalidTransitionError
from core.models import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    ComplianceAlert,
    Notification,
    NotificationKind,
    new_id,
    utc_now,
)
from core.notifications import NotificationDispatcher
from core.repository import ComplianceRepository

logger = logging.getLogger(__name__)


ESCALATION_TARGET = "compliance_team"

FOLLOW_UP_ACTIONS: dict[AlertSeverity, tuple[str, ...]] = {
    AlertSeverity.CRITICAL: (
        "Immediate investigation required",
        "Freeze related accounts",
        "Notify regulatory authorities",
    ),
    AlertSeverity.HIGH: (
        "Enhanced monitoring initiated",
        "Customer verification required",
        "Document all findings",
    ),
    AlertSeverity.MEDIUM: (
        "Monitor customer activity",
        "Review transaction history",
    ),
    AlertSeverity.LOW: (
        "Log for future reference",
    ),
}

# Statuses an alert may move to from each status
_ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset({AlertStatus.INVESTIGATING, AlertStatus.RESOLVED, AlertStatus.DISMISSED}),
    AlertStatus.INVESTIGATING: frozenset({AlertStatus.RESOLVED, AlertStatus.DISMISSED}),
    AlertStatus.RESOLVED: frozenset(),
    AlertStatus.DISMISSED: frozenset(),
}


def follow_up_actions(alert_type: AlertType, severity: AlertSeverity) -> list[str]:
    """Follow-up actions for an alert. Only severity drives the list today."""
    return list(FOLLOW_UP_ACTIONS[severity])


class AlertEngine:
    """
    Creates, stores and triages compliance alerts.

    Notifications go through the dispatcher without blocking alert creation.
    """

    def __init__(
        self,
        repository: ComplianceRepository,
        dispatcher: NotificationDispatcher,
        escalation_target: str = ESCALATION_TARGET,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._dispatcher = dispatcher
        self._escalation_target = escalation_target
        self._clock = clock

    async def create_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        description: str,
        details: dict[str, Any] | None = None,
        customer_id: str | None = None,
        transaction_id: str | None = None,
    ) -> ComplianceAlert:
        """
        Create and store an alert, notify, and escalate if critical.

        Args:
            alert_type: Alert category
            severity: Alert severity
            description: Human-readable summary
            details: Structured detail payload
            customer_id: Customer concerned, if any
            transaction_id: Transaction concerned, if any

        Returns:
            The stored alert
        """
        alert_type = AlertType(alert_type)
        severity = AlertSeverity(severity)

        alert = ComplianceAlert(
            alert_id=new_id("alt"),
            alert_type=alert_type,
            severity=severity,
            description=description,
            details=details or {},
            customer_id=customer_id,
            transaction_id=transaction_id,
            created_at=self._clock(),
            follow_up_actions=follow_up_actions(alert_type, severity),
        )
        self._repository.save_alert(alert)

        logger.info(
            f"Alert {alert.alert_id} created: {alert_type.value}/{severity.value} - {description}"
        )

        self._dispatcher.dispatch(self._build_notification(alert))

        if severity == AlertSeverity.CRITICAL:
            alert = self.assign_alert(alert.alert_id, self._escalation_target) or alert

        return alert

    def _build_notification(self, alert: ComplianceAlert) -> Notification:
        return Notification(
            kind=NotificationKind.ALERT,
            severity=alert.severity,
            title=f"Compliance alert: {alert.alert_type.value}",
            message=alert.description,
            details={
                "alert_id": alert.alert_id,
                "customer_id": alert.customer_id,
                "transaction_id": alert.transaction_id,
                "follow_up_actions": alert.follow_up_actions,
            },
            created_at=alert.created_at,
        )

    def get_alert(self, alert_id: str) -> ComplianceAlert | None:
        return self._repository.get_alert(alert_id)

    def get_alerts(self, status: AlertStatus | None = None) -> list[ComplianceAlert]:
        """All alerts in creation order, optionally restricted to one status."""
        alerts = self._repository.list_alerts()
        if status is not None:
            alerts = [a for a in alerts if a.status == AlertStatus(status)]
        return alerts

    def get_active_alerts(self) -> list[ComplianceAlert]:
        """Active alerts, critical first; equal severities keep creation order."""
        active = self.get_alerts(AlertStatus.ACTIVE)
        return sorted(active, key=lambda a: a.severity.rank, reverse=True)

    def assign_alert(self, alert_id: str, assignee: str) -> ComplianceAlert | None:
        """
        Assign an alert.

        Returns:
            The updated alert, or None when the id is unknown
        """
        alert = self._repository.get_alert(alert_id)
        if alert is None:
            logger.warning(f"Cannot assign unknown alert {alert_id}")
            return None

        alert.assigned_to = assignee
        self._repository.save_alert(alert)
        logger.info(f"Alert {alert_id} assigned to {assignee}")
        return alert

    def start_investigation(self, alert_id: str, investigator: str | None = None) -> ComplianceAlert | None:
        """Move an active alert to investigating."""
        alert = self._transition(alert_id, AlertStatus.INVESTIGATING)
        if alert is not None and investigator:
            alert.assigned_to = investigator
            self._repository.save_alert(alert)
        return alert

    def resolve_alert(self, alert_id: str, resolution: str) -> ComplianceAlert | None:
        """Close an alert as resolved."""
        return self._transition(alert_id, AlertStatus.RESOLVED, resolution)

    def dismiss_alert(self, alert_id: str, resolution: str) -> ComplianceAlert | None:
        """Close an alert as a false positive."""
        return self._transition(alert_id, AlertStatus.DISMISSED, resolution)

    def _transition(
        self,
        alert_id: str,
        target: AlertStatus,
        resolution: str | None = None,
    ) -> ComplianceAlert | None:
        alert = self._repository.get_alert(alert_id)
        if alert is None:
            logger.warning(f"Cannot move unknown alert {alert_id} to {target.value}")
            return None

        if target not in _ALLOWED_TRANSITIONS[alert.status]:
            raise InvalidTransitionError(alert_id, alert.status.value, target.value)

        alert.status = target
        if target in (AlertStatus.RESOLVED, AlertStatus.DISMISSED):
            alert.resolved_at = self._clock()
            alert.resolution = resolution

        self._repository.save_alert(alert)
        logger.info(f"Alert {alert_id} is now {target.value}")
        return alert

    def get_statistics(self) -> dict:
        alerts = self._repository.list_alerts()
        by_severity: dict[str, int] = {s.value: 0 for s in AlertSeverity}
        by_status: dict[str, int] = {s.value: 0 for s in AlertStatus}
        for alert in alerts:
            by_severity[alert.severity.value] += 1
            by_status[alert.status.value] += 1
        return {
            "total_alerts": len(alerts),
            "by_severity": by_severity,
            "by_status": by_status,
        }
