"""Tests for rate limit response headers."""

import pytest
from starlette.responses import Response

from admission.services.admission_engine import AdmissionDecision
from admission.services.annotator import annotate_response, rate_limit_headers


def test_headers_are_decimal_strings() -> None:
    assert rate_limit_headers(10, 4, 37) == {
        "x-ratelimit-limit": "10",
        "x-ratelimit-remaining": "4",
        "x-ratelimit-reset": "37",
    }


def test_negative_values_are_rejected() -> None:
    with pytest.raises(ValueError):
        rate_limit_headers(10, -1, 5)


@pytest.mark.parametrize("admitted, status_code", [(True, 200), (False, 429)])
def test_annotation_is_identical_on_both_paths(admitted: bool, status_code: int) -> None:
    decision = AdmissionDecision(
        admitted=admitted, client_key="k", limit=5, remaining=0, reset_seconds=12
    )

    response = annotate_response(Response(status_code=status_code), decision)

    assert response.headers["x-ratelimit-limit"] == "5"
    assert response.headers["x-ratelimit-remaining"] == "0"
    assert response.headers["x-ratelimit-reset"] == "12"
