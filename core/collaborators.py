"""
External Collaborators
======================

Ports the compliance engine calls out to, plus default implementations.

- DataGatherer: per report type, collects report payloads
- FilingPreparer: formats/validates a filing before submission
- RegulatorGateway: delivers a filing to the regulator
- ScreeningLookup: PEP and sanctions checks

Defaults are stubs returning empty payloads, accepting every submission and
never matching a screening. The HTTP adapters (aiohttp) are the shape a real
deployment plugs in.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, TypeVar

import aiohttp

from core.exceptions import CollaboratorTimeoutError, RegulatorGatewayError, ScreeningError
from core.models import RegulatoryFiling, ReportingPeriod, ReportType

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_timeout(
    awaitable: Awaitable[T],
    collaborator: str,
    timeout_seconds: float | None,
) -> T:
    """
    Await a collaborator call, bounded by an optional timeout.

    Raises:
        CollaboratorTimeoutError: If the timeout elapses
    """
    if timeout_seconds is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout_seconds)
    except asyncio.TimeoutError:
        raise CollaboratorTimeoutError(collaborator, timeout_seconds) from None


# =============================================================================
# DATA GATHERERS
# =============================================================================

class DataGatherer(ABC):
    """Collects the payload of one report type."""

    @abstractmethod
    async def gather(self, jurisdiction: str, period: ReportingPeriod) -> dict[str, Any]:
        """Return the report payload for the jurisdiction and period."""


class StubDataGatherer(DataGatherer):
    """
    Placeholder gatherer returning the empty payload shape of its report type.

    Subclasses list the collection fields in ``EMPTY_FIELDS``.
    """

    EMPTY_FIELDS: dict[str, Any] = {}

    async def gather(self, jurisdiction: str, period: ReportingPeriod) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "jurisdiction": jurisdiction,
            "period": period.to_dict(),
        }
        # Copy mutable defaults so payloads never share lists/dicts
        for key, value in self.EMPTY_FIELDS.items():
            payload[key] = type(value)() if isinstance(value, (list, dict)) else value
        payload.update(self.extra_fields())
        payload["generated_at"] = datetime.now(timezone.utc).isoformat()
        return payload

    def extra_fields(self) -> dict[str, Any]:
        return {}


class SARDataGatherer(StubDataGatherer):
    """Suspicious Activity Report data."""
    EMPTY_FIELDS = {"suspicious_activities": [], "total_amount": 0, "affected_customers": 0}


class CTRDataGatherer(StubDataGatherer):
    """Currency Transaction Report data."""
    EMPTY_FIELDS = {"transactions_over_10k": [], "total_amount": 0, "transaction_count": 0}


class STRDataGatherer(StubDataGatherer):
    """Suspicious Transaction Report data."""
    EMPTY_FIELDS = {"suspicious_transactions": [], "risk_categories": {}}


class MifirDataGatherer(StubDataGatherer):
    """MiFIR cross-border transaction data, stamped with the entity LEI."""
    EMPTY_FIELDS = {"transactions": [], "total_volume": 0}

    def __init__(self, lei_code: str | None = None):
        self.lei_code = lei_code

    def extra_fields(self) -> dict[str, Any]:
        return {"lei_code": self.lei_code}


class AMLDataGatherer(StubDataGatherer):
    """AML monitoring data."""
    EMPTY_FIELDS = {"monitored_transactions": [], "alerts_triggered": 0, "compliance_actions": []}


class AuditDataGatherer(StubDataGatherer):
    """Audit trail data."""
    EMPTY_FIELDS = {"audit_events": [], "compliance_violations": [], "corrective_actions": []}


class TransactionMonitoringDataGatherer(StubDataGatherer):
    """Transaction monitoring data."""
    EMPTY_FIELDS = {"monitored_transactions": [], "risk_assessments": [], "flagged_activities": []}


def default_gatherers(lei_code: str | None = None) -> dict[ReportType, DataGatherer]:
    """One stub gatherer per report type."""
    return {
        ReportType.SAR: SARDataGatherer(),
        ReportType.CTR: CTRDataGatherer(),
        ReportType.STR: STRDataGatherer(),
        ReportType.MIFIR: MifirDataGatherer(lei_code),
        ReportType.AML: AMLDataGatherer(),
        ReportType.AUDIT: AuditDataGatherer(),
        ReportType.TRANSACTION_MONITORING: TransactionMonitoringDataGatherer(),
    }


# =============================================================================
# FILING PREPARATION AND SUBMISSION
# =============================================================================

class FilingPreparer(ABC):
    """Formats and validates a filing payload before submission."""

    @abstractmethod
    async def prepare(self, filing: RegulatoryFiling) -> None:
        """Mutate or validate ``filing.data`` in place."""


class PassThroughFilingPreparer(FilingPreparer):
    """Leaves the payload untouched."""

    async def prepare(self, filing: RegulatoryFiling) -> None:
        logger.debug(f"Preparing {filing.filing_type.value} filing {filing.filing_id}")


@dataclass
class SubmissionReceipt:
    """What the regulator returned for a submission."""
    reference_number: str | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    raw_response: dict[str, Any] = field(default_factory=dict)


class RegulatorGateway(ABC):
    """Delivers filings to the regulatory authority."""

    @abstractmethod
    async def submit(self, filing: RegulatoryFiling) -> SubmissionReceipt:
        """
        Submit a filing.

        Raises:
            RegulatorGatewayError: If the regulator refuses or fails
        """


class AcceptingRegulatorGateway(RegulatorGateway):
    """Gateway that records every submission as successful."""

    async def submit(self, filing: RegulatoryFiling) -> SubmissionReceipt:
        logger.info(f"Submitting {filing.filing_type.value} filing {filing.filing_id} to regulator")
        return SubmissionReceipt()


class HttpRegulatorGateway(RegulatorGateway):
    """
    Posts filings as JSON to a regulator (or intermediary) endpoint.

    The endpoint is expected to answer 2xx with an optional
    ``reference_number`` in the JSON body.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        timeout_seconds: float = 30.0,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def submit(self, filing: RegulatoryFiling) -> SubmissionReceipt:
        url = f"{self.endpoint}/filings/{filing.filing_type.value}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, json=filing.to_dict(), headers=self._headers()) as response:
                    if response.status >= 300:
                        body = await response.text()
                        raise RegulatorGatewayError(
                            f"Regulator returned HTTP {response.status}: {body[:200]}",
                            code=str(response.status),
                        )
                    data = await response.json(content_type=None) or {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RegulatorGatewayError(f"Regulator request failed: {e}", code="CONNECTION") from e

        return SubmissionReceipt(
            reference_number=data.get("reference_number"),
            raw_response=data,
        )


# =============================================================================
# SCREENING (PEP / SANCTIONS)
# =============================================================================

class ScreeningLookup(ABC):
    """Checks a customer against a watchlist."""

    name: str = "screening"

    @abstractmethod
    async def check(self, customer_id: str) -> dict[str, Any] | None:
        """Return match details, or None when the customer is not listed."""


class NullScreeningLookup(ScreeningLookup):
    """Never matches."""

    def __init__(self, name: str = "screening"):
        self.name = name

    async def check(self, customer_id: str) -> dict[str, Any] | None:
        logger.debug(f"Checking {self.name} status for {customer_id}")
        return None


class WatchlistScreeningLookup(ScreeningLookup):
    """Matches customers listed in a static, in-process watchlist."""

    def __init__(self, entries: dict[str, dict[str, Any]], name: str = "watchlist"):
        self.name = name
        self._entries = dict(entries)

    def add(self, customer_id: str, details: dict[str, Any] | None = None) -> None:
        self._entries[customer_id] = details or {}

    async def check(self, customer_id: str) -> dict[str, Any] | None:
        if customer_id not in self._entries:
            return None
        return {"customer_id": customer_id, "list": self.name, **self._entries[customer_id]}


class HttpScreeningLookup(ScreeningLookup):
    """
    Queries a screening service over HTTP.

    ``GET {endpoint}/{customer_id}``: 404 means no match, 200 returns the
    match details as JSON.
    """

    def __init__(
        self,
        endpoint: str,
        name: str,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.name = name
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def check(self, customer_id: str) -> dict[str, Any] | None:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        url = f"{self.endpoint}/{customer_id}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, headers=headers) as response:
                    if response.status == 404:
                        return None
                    if response.status != 200:
                        raise ScreeningError(
                            f"{self.name} service returned HTTP {response.status}",
                            collaborator=self.name,
                        )
                    return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ScreeningError(f"{self.name} request failed: {e}", collaborator=self.name) from e
