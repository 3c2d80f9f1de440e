from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Ping"])


@router.get("/ping")
def ping() -> dict:
    """Minimal rate limited endpoint, useful for checking quota headers."""

    return {"pong": True}
