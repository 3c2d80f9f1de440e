"""Rate limit response headers.

Applied identically to forwarded and rejected responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.responses import Response

if TYPE_CHECKING:
    from admission.services.admission_engine import AdmissionDecision

LIMIT_HEADER = "x-ratelimit-limit"
REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"


def rate_limit_headers(limit: int, remaining: int, reset_seconds: int) -> dict[str, str]:
    """Render the three rate limit headers as decimal strings.

    Raises:
        ValueError: If any value is negative.
    """

    if limit < 0 or remaining < 0 or reset_seconds < 0:
        raise ValueError("rate limit header values must be non-negative")

    return {
        LIMIT_HEADER: str(int(limit)),
        REMAINING_HEADER: str(int(remaining)),
        RESET_HEADER: str(int(reset_seconds)),
    }


def annotate_response(response: Response, decision: "AdmissionDecision") -> Response:
    """Set the decision's rate limit headers on ``response`` and return it."""

    for name, value in decision.headers.items():
        response.headers[name] = value
    return response
