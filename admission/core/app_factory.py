"""Application factory for the FastAPI app.

Centralizes app construction (middleware, handlers, routers, docs) so tests
can build isolated apps with their own engine and settings.
"""

from __future__ import annotations

from fastapi import FastAPI

from admission.api.routes import health_router, ping_router
from admission.core.config import RateLimitSettings, settings
from admission.core.exception_handlers import setup_exception_handlers
from admission.core.logging import configure_logging
from admission.core.middleware import request_id_middleware
from admission.core.openapi import apply_openapi_customizations
from admission.core.rate_limit import build_rate_limit_middleware, get_admission_engine
from admission.services.admission_engine import AdmissionEngine


def create_app(
    *,
    rate_limit_settings: RateLimitSettings | None = None,
    engine: AdmissionEngine | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limit_settings: Optional override of the global rate limit settings.
        engine: Optional prebuilt engine (e.g., with a fake clock or store).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    cfg = rate_limit_settings or settings.rate_limit

    app = FastAPI(
        title="Fixed Window Admission",
        description=(
            "Reference service for fixed-window request admission. Every "
            "non-exempt response carries x-ratelimit-limit, "
            "x-ratelimit-remaining and x-ratelimit-reset headers; requests "
            "over quota receive 429."
        ),
        version="0.1.0",
    )

    # Middleware: the last registered runs first, so request IDs wrap admission
    if cfg.enabled:
        app.middleware("http")(
            build_rate_limit_middleware(
                engine or get_admission_engine(cfg),
                failure_mode=cfg.failure_mode,
                exempt_paths=cfg.exempt_paths,
            )
        )
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(ping_router, prefix="/v1")
    app.include_router(health_router)

    if cfg.enabled:
        apply_openapi_customizations(app, exempt_paths=cfg.exempt_paths)

    return app
