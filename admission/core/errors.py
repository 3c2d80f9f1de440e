"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Quota exhaustion is not an error: it is a normal negative admission decision.
The errors below mean the decision could not be made at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    backend: str
    operation: str
    timeout_seconds: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationAppError(AppError):
    """Raised when rate limit configuration is invalid at startup."""


class AdmissionIndeterminateError(AppError):
    """Raised when an admission decision cannot be made.

    The integrating pipeline decides whether to fail open or closed.
    """


class IdentifierUnavailableError(AdmissionIndeterminateError):
    """Raised when no client key can be derived from the request."""


class StoreUnavailableError(AdmissionIndeterminateError):
    """Raised when the window store backend call fails."""


class StoreTimeoutError(AdmissionIndeterminateError):
    """Raised when a window store call exceeds its deadline."""


class StoreProtocolError(AdmissionIndeterminateError):
    """Raised when the window store returns a malformed response."""
