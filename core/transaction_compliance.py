"""
Transaction Compliance Checker
==============================

Screens a single transaction and raises alerts for what it finds.

Checks, each gated by configuration:
1. AML reporting threshold
2. Suspicious pattern heuristics (large withdrawal, international)
3. PEP screening
4. Sanctions screening

A transaction is compliant when no flag was raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from core.alert_engine import AlertEngine
from core.collaborators import NullScreeningLookup, ScreeningLookup, call_with_timeout
from core.config import AMLReportingConfig, TransactionMonitoringConfig
from core.models import AlertSeverity, AlertType, ComplianceAlert

logger = logging.getLogger(__name__)


HOME_COUNTRY = "US"


@dataclass
class ComplianceCheckResult:
    """Outcome of a transaction screening."""
    compliant: bool
    alerts: list[ComplianceAlert] = field(default_factory=list)
    flags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "compliant": self.compliant,
            "alerts": [a.to_dict() for a in self.alerts],
            "flags": list(self.flags),
        }


class TransactionComplianceChecker:
    """Runs the configured checks against one transaction."""

    def __init__(
        self,
        alert_engine: AlertEngine,
        aml_config: AMLReportingConfig,
        monitoring_config: TransactionMonitoringConfig,
        pep_lookup: ScreeningLookup | None = None,
        sanctions_lookup: ScreeningLookup | None = None,
        timeout_seconds: float | None = None,
    ):
        self._alerts = alert_engine
        self._aml = aml_config
        self._monitoring = monitoring_config
        self._pep_lookup = pep_lookup or NullScreeningLookup("pep")
        self._sanctions_lookup = sanctions_lookup or NullScreeningLookup("sanctions")
        self._timeout = timeout_seconds

    async def check_transaction_compliance(
        self,
        customer_id: str,
        transaction_id: str,
        amount: float,
        transaction_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> ComplianceCheckResult:
        """
        Screen a transaction.

        Args:
            customer_id: Customer who made the transaction
            transaction_id: Transaction being screened
            amount: Transaction amount
            transaction_type: e.g. "deposit", "withdrawal"
            metadata: Free-form context; ``location.country`` is inspected

        Returns:
            ComplianceCheckResult with the raised flags and alerts

        Raises:
            ScreeningError: A PEP or sanctions lookup failed
            CollaboratorTimeoutError: A lookup exceeded the timeout
        """
        metadata = metadata or {}
        flags: list[str] = []
        alerts: list[ComplianceAlert] = []

        if self._aml.enabled and amount >= self._aml.threshold_amount:
            flags.append("aml_threshold_breach")

        if self._monitoring.enabled:
            patterns = self.detect_suspicious_patterns(amount, transaction_type, metadata)
            if patterns:
                flags.extend(patterns)
                alerts.append(await self._alerts.create_alert(
                    AlertType.SUSPICIOUS_TRANSACTION,
                    AlertSeverity.MEDIUM,
                    f"Suspicious transaction pattern detected: {', '.join(patterns)}",
                    {
                        "customer_id": customer_id,
                        "transaction_id": transaction_id,
                        "amount": amount,
                        "patterns": patterns,
                    },
                    customer_id=customer_id,
                    transaction_id=transaction_id,
                ))

        if self._monitoring.pep_monitoring:
            pep_match = await self._screen(self._pep_lookup, customer_id)
            if pep_match:
                flags.append("pep_match")
                alerts.append(await self._alerts.create_alert(
                    AlertType.PEP_MATCH,
                    AlertSeverity.HIGH,
                    "Politically Exposed Person transaction detected",
                    {"customer_id": customer_id, "transaction_id": transaction_id, "pep_details": pep_match},
                    customer_id=customer_id,
                    transaction_id=transaction_id,
                ))

        if self._monitoring.sanctions_screening:
            sanctions_match = await self._screen(self._sanctions_lookup, customer_id)
            if sanctions_match:
                flags.append("sanctions_match")
                alerts.append(await self._alerts.create_alert(
                    AlertType.SANCTIONS_MATCH,
                    AlertSeverity.CRITICAL,
                    "Sanctions list match detected",
                    {
                        "customer_id": customer_id,
                        "transaction_id": transaction_id,
                        "sanctions_details": sanctions_match,
                    },
                    customer_id=customer_id,
                    transaction_id=transaction_id,
                ))

        result = ComplianceCheckResult(compliant=not flags, alerts=alerts, flags=flags)
        if not result.compliant:
            logger.info(
                f"Transaction {transaction_id} for {customer_id} flagged: {', '.join(flags)}"
            )
        return result

    def detect_suspicious_patterns(
        self,
        amount: float,
        transaction_type: str,
        metadata: dict[str, Any],
    ) -> list[str]:
        """Pattern names that apply to the transaction, in check order."""
        patterns = []

        # suspicious_activity_threshold defaults to the fixed 10000 large-withdrawal limit
        if amount > self._monitoring.suspicious_activity_threshold and transaction_type == "withdrawal":
            patterns.append("large_withdrawal")

        # A location without a readable country counts as foreign
        location = metadata.get("location")
        if location and (not isinstance(location, dict) or location.get("country") != HOME_COUNTRY):
            patterns.append("international_transaction")

        return patterns

    async def _screen(self, lookup: ScreeningLookup, customer_id: str) -> dict[str, Any] | None:
        logger.debug(f"Checking {lookup.name} status for {customer_id}")
        return await call_with_timeout(lookup.check(customer_id), f"{lookup.name}_lookup", self._timeout)
