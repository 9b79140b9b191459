"""
Compliance Exceptions
=====================

Error taxonomy for the compliance reporting engine.

- Configuration problems (bad YAML, unknown enum values, malformed due times)
- External collaborator failures (data gathering, regulator gateway, screening)
- Illegal lifecycle transitions on reports, filings and alerts
"""

from __future__ import annotations


class ComplianceError(Exception):
    """Base class for all compliance engine errors."""


class ConfigurationError(ComplianceError, ValueError):
    """Raised when configuration is missing, malformed or inconsistent.

    Inherits from ValueError so callers validating input with
    ``except ValueError`` keep working.
    """


class InvalidTransitionError(ComplianceError):
    """Raised when an entity is moved to a status its current status forbids."""

    def __init__(self, entity_id: str, current: str, target: str):
        super().__init__(f"{entity_id}: cannot transition from '{current}' to '{target}'")
        self.entity_id = entity_id
        self.current = current
        self.target = target


class CollaboratorError(ComplianceError):
    """Failure raised by (or on behalf of) an external collaborator."""

    def __init__(self, message: str, collaborator: str = ""):
        super().__init__(message)
        self.collaborator = collaborator


class CollaboratorTimeoutError(CollaboratorError):
    """An external collaborator did not answer within the configured timeout."""

    def __init__(self, collaborator: str, timeout_seconds: float):
        super().__init__(
            f"{collaborator} timed out after {timeout_seconds:.1f}s",
            collaborator=collaborator,
        )
        self.timeout_seconds = timeout_seconds


class DataGatheringError(CollaboratorError):
    """A data gatherer failed while collecting report data."""


class RegulatorGatewayError(CollaboratorError):
    """The regulator gateway refused or failed a submission."""

    def __init__(self, message: str, collaborator: str = "regulator_gateway", code: str | None = None):
        super().__init__(message, collaborator=collaborator)
        self.code = code


class FilingSubmissionError(CollaboratorError):
    """A regulatory filing could not be submitted after all attempts."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message, collaborator="regulator_gateway")
        self.attempts = attempts


class ScreeningError(CollaboratorError):
    """A PEP or sanctions lookup failed."""
