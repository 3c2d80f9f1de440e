from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe.

    Exempt from admission control by default so load balancers are never
    throttled.
    """

    return {"status": "ok"}
