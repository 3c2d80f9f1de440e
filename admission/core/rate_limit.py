"""Admission control wiring for the HTTP layer.

This module plugs the decision engine into FastAPI/Starlette as an
``app.middleware("http")`` function.

Design goals:
- Minimal coupling: the middleware only sees ``AdmissionEngine.decide``.
- Swap-friendly: the window store is chosen here, behind an abstract interface.
- Explicit failure policy: an indeterminate decision either forwards the
  request (fail open) or answers 503 (fail closed), per settings.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, Literal

from fastapi import Request, Response, status

from admission.adapters.rate_limit.base import AbstractWindowStore
from admission.adapters.rate_limit.in_memory import InMemoryWindowStore
from admission.core.config import RateLimitSettings, settings
from admission.core.errors import AdmissionIndeterminateError
from admission.core.exception_handlers import app_error_response
from admission.services.admission_engine import AdmissionEngine, RateLimitConfig
from admission.services.annotator import annotate_response

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]
FailureMode = Literal["open", "closed"]


_engine: AdmissionEngine | None = None
_engine_config: tuple | None = None


def get_admission_engine(
    rate_limit_settings: RateLimitSettings | None = None,
    *,
    store: AbstractWindowStore | None = None,
) -> AdmissionEngine:
    """Return a process-wide admission engine.

    The instance is cached in-module so the store keeps its state across
    requests. If configuration changes (primarily in tests), the engine and
    its in-memory store are rebuilt.

    Args:
        rate_limit_settings: Settings to build from; defaults to global settings.
        store: Optional backend; defaults to a fresh InMemoryWindowStore.

    Returns:
        AdmissionEngine: Configured engine instance.
    """

    global _engine, _engine_config

    cfg = rate_limit_settings or settings.rate_limit
    config_key = (
        cfg.max_requests,
        cfg.window_seconds,
        cfg.identifier,
        cfg.api_key_header,
        cfg.store_timeout_seconds,
        id(store) if store is not None else None,
    )

    if _engine is None or _engine_config != config_key:
        _engine = AdmissionEngine(
            RateLimitConfig.from_settings(cfg),
            store if store is not None else InMemoryWindowStore(),
            store_timeout_seconds=cfg.store_timeout_seconds,
        )
        _engine_config = config_key

    return _engine


def reset_admission_engine() -> None:
    """Drop the cached engine so the next call builds a fresh one."""

    global _engine, _engine_config
    _engine = None
    _engine_config = None


def rejection_response() -> Response:
    """Empty-bodied 429 response; headers are added by the annotator."""

    return Response(status_code=status.HTTP_429_TOO_MANY_REQUESTS)


def build_rate_limit_middleware(
    engine: AdmissionEngine,
    *,
    failure_mode: FailureMode = "closed",
    exempt_paths: Iterable[str] = ("/health",),
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build the HTTP middleware enforcing admission control.

    Args:
        engine: Decision engine shared by all requests.
        failure_mode: ``"open"`` forwards indeterminate requests without rate
            limit headers; ``"closed"`` answers them with 503.
        exempt_paths: Exact request paths that bypass admission.

    Returns:
        Middleware function suitable for ``app.middleware("http")``.

    Raises:
        ValueError: If failure_mode is unknown.
    """

    if failure_mode not in ("open", "closed"):
        raise ValueError(f"Unknown failure mode: {failure_mode!r}")
    exempt = frozenset(exempt_paths)

    async def rate_limit_middleware(request: Request, call_next: CallNext) -> Response:
        if request.url.path in exempt:
            return await call_next(request)

        try:
            decision = await engine.decide(request)
        except AdmissionIndeterminateError as exc:
            logger.warning(
                "rate_limit.indeterminate",
                extra={
                    "error_code": exc.code,
                    "error_message": exc.message,
                    "failure_mode": failure_mode,
                    "request_path": request.url.path,
                },
            )
            if failure_mode == "open":
                return await call_next(request)
            return app_error_response(exc)

        if not decision.admitted:
            return annotate_response(rejection_response(), decision)

        response = await call_next(request)
        return annotate_response(response, decision)

    return rate_limit_middleware
