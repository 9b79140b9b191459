"""
Filing Submission Manager
=========================

Preparation, submission and regulator-response tracking for regulatory
filings.

Lifecycle:
    preparing -> submitted -> accepted | rejected | under_review
    under_review -> accepted | rejected

A filing is stored only once the regulator gateway has taken it. Failed
submissions are retried with exponential backoff when more than one
attempt is configured.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from core.collaborators import (
    FilingPreparer,
    RegulatorGateway,
    SubmissionReceipt,
    call_with_timeout,
)
from core.exceptions import FilingSubmissionError, InvalidTransitionError
from core.models import (
    FilingAttachment,
    FilingStatus,
    FilingType,
    RegulatoryFiling,
    ensure_aware,
    new_id,
    utc_now,
)
from core.repository import ComplianceRepository

logger = logging.getLogger(__name__)


# Gateway error codes that will fail identically on every attempt
NON_RETRYABLE_CODES = frozenset({
    "400",
    "401",
    "403",
    "422",
    "DUPLICATE_FILING",
    "VALIDATION_FAILED",
    "UNAUTHORIZED",
})

_RESPONSE_TRANSITIONS: dict[FilingStatus, frozenset[FilingStatus]] = {
    FilingStatus.SUBMITTED: frozenset({FilingStatus.ACCEPTED, FilingStatus.REJECTED, FilingStatus.UNDER_REVIEW}),
    FilingStatus.UNDER_REVIEW: frozenset({FilingStatus.ACCEPTED, FilingStatus.REJECTED}),
}


class SubmissionRetryPolicy:
    """
    Exponential backoff between submission attempts.

    With ``max_attempts=1`` a failure is final.
    """

    def __init__(
        self,
        max_attempts: int = 1,
        initial_delay_seconds: float = 1.0,
        max_delay_seconds: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self._initial_delay = initial_delay_seconds
        self._max_delay = max_delay_seconds
        self._exponential_base = exponential_base
        self._jitter = jitter

    def get_retry_delay(self, attempt_number: int) -> float:
        """Delay before the attempt following ``attempt_number`` (1-based)."""
        delay = self._initial_delay * (self._exponential_base ** (attempt_number - 1))
        delay = min(delay, self._max_delay)
        if self._jitter:
            delay += delay * random.uniform(0, 0.25)
        return delay

    def should_retry(self, attempt_number: int, error: Exception) -> bool:
        if attempt_number >= self.max_attempts:
            return False
        code = getattr(error, "code", None)
        return not (code and code in NON_RETRYABLE_CODES)


@dataclass
class FilingFilter:
    """Optional criteria for listing filings. Unset fields match everything."""
    filing_type: FilingType | None = None
    status: FilingStatus | None = None
    date_from: datetime | None = None  # Inclusive, on created_at
    date_to: datetime | None = None  # Inclusive, on created_at

    def __post_init__(self):
        self.date_from = ensure_aware(self.date_from)
        self.date_to = ensure_aware(self.date_to)

    def matches(self, filing: RegulatoryFiling) -> bool:
        if self.filing_type is not None and filing.filing_type != FilingType(self.filing_type):
            return False
        if self.status is not None and filing.status != FilingStatus(self.status):
            return False
        if self.date_from is not None and filing.created_at < self.date_from:
            return False
        if self.date_to is not None and filing.created_at > self.date_to:
            return False
        return True


class FilingSubmissionManager:
    """Submits filings through the regulator gateway and records the outcome."""

    def __init__(
        self,
        repository: ComplianceRepository,
        preparer: FilingPreparer,
        gateway: RegulatorGateway,
        retry_policy: SubmissionRetryPolicy | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._preparer = preparer
        self._gateway = gateway
        self._retry_policy = retry_policy or SubmissionRetryPolicy()
        self._timeout = timeout_seconds
        self._clock = clock

    async def submit_filing(
        self,
        filing_type: FilingType,
        data: dict[str, Any],
        submitted_by: str,
    ) -> RegulatoryFiling:
        """
        Prepare and submit a filing.

        Args:
            filing_type: Regulatory form being filed
            data: Filing payload
            submitted_by: Submitting user, or "system"

        Returns:
            The stored filing with status ``submitted``

        Raises:
            FilingSubmissionError: Preparation or submission failed; nothing is stored
        """
        filing_type = FilingType(filing_type)
        now = self._clock()
        filing = RegulatoryFiling(
            filing_id=new_id("fil"),
            filing_type=filing_type,
            data=data,
            submitted_by=submitted_by,
            created_at=now,
            updated_at=now,
        )

        try:
            await call_with_timeout(self._preparer.prepare(filing), "filing_preparer", self._timeout)
        except Exception as e:
            raise FilingSubmissionError(
                f"Preparation of {filing_type.value} filing {filing.filing_id} failed: {e}"
            ) from e

        receipt = await self._submit_with_retry(filing)

        filing.status = FilingStatus.SUBMITTED
        filing.submission_date = self._clock()
        filing.updated_at = filing.submission_date
        if receipt.reference_number:
            filing.reference_number = receipt.reference_number
        self._repository.save_filing(filing)

        logger.info(
            f"Filing {filing.filing_id} ({filing_type.value}) submitted by {submitted_by}"
            + (f", reference {filing.reference_number}" if filing.reference_number else "")
        )
        return filing

    async def _submit_with_retry(self, filing: RegulatoryFiling) -> SubmissionReceipt:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await call_with_timeout(
                    self._gateway.submit(filing), "regulator_gateway", self._timeout
                )
            except Exception as e:
                error = e

            if not self._retry_policy.should_retry(attempt, error):
                logger.error(
                    f"Submission of filing {filing.filing_id} failed after {attempt} attempt(s): {error}"
                )
                raise FilingSubmissionError(
                    f"Submission of {filing.filing_type.value} filing {filing.filing_id} failed: {error}",
                    attempts=attempt,
                ) from error

            delay = self._retry_policy.get_retry_delay(attempt)
            logger.warning(
                f"Submission attempt {attempt} for filing {filing.filing_id} failed: {error}. "
                f"Retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

    def get_filing(self, filing_id: str) -> RegulatoryFiling | None:
        return self._repository.get_filing(filing_id)

    def record_regulator_response(
        self,
        filing_id: str,
        status: FilingStatus,
        reference_number: str | None = None,
        reason: str | None = None,
    ) -> RegulatoryFiling | None:
        """
        Record the regulator's answer to a submitted filing.

        Returns:
            The updated filing, or None when the id is unknown

        Raises:
            InvalidTransitionError: The filing cannot move to ``status``
        """
        status = FilingStatus(status)
        filing = self._repository.get_filing(filing_id)
        if filing is None:
            logger.warning(f"Cannot record response for unknown filing {filing_id}")
            return None

        if status not in _RESPONSE_TRANSITIONS.get(filing.status, frozenset()):
            raise InvalidTransitionError(filing_id, filing.status.value, status.value)

        now = self._clock()
        filing.status = status
        filing.updated_at = now
        if reference_number:
            filing.reference_number = reference_number
        if status == FilingStatus.ACCEPTED:
            filing.acceptance_date = now
        elif status == FilingStatus.REJECTED:
            filing.rejection_date = now
            filing.rejection_reason = reason

        self._repository.save_filing(filing)
        logger.info(f"Filing {filing_id} is now {status.value}")
        return filing

    def add_attachment(self, filing_id: str, filename: str, file_url: str) -> FilingAttachment | None:
        """Attach a supporting document to a filing."""
        filing = self._repository.get_filing(filing_id)
        if filing is None:
            logger.warning(f"Cannot attach {filename} to unknown filing {filing_id}")
            return None

        now = self._clock()
        attachment = FilingAttachment(
            attachment_id=new_id("att"),
            filename=filename,
            file_url=file_url,
            uploaded_at=now,
        )
        filing.attachments.append(attachment)
        filing.updated_at = now
        self._repository.save_filing(filing)
        return attachment

    def get_filings(self, filing_filter: FilingFilter | None = None) -> list[RegulatoryFiling]:
        """Filings matching the filter, newest first."""
        filing_filter = filing_filter or FilingFilter()
        matching = [f for f in self._repository.list_filings() if filing_filter.matches(f)]
        return sorted(reversed(matching), key=lambda f: f.created_at, reverse=True)
