"""OpenAPI customization utilities.

Documents admission control in the generated schema:
- Reusable ``x-ratelimit-*`` header components
- A ``429`` response on every operation that is not exempt from admission
- The three rate limit headers on each operation's success responses
"""

from __future__ import annotations

from typing import Any, Dict, Iterable

from fastapi import FastAPI

_RATE_LIMIT_HEADERS: Dict[str, Dict[str, Any]] = {
    "x-ratelimit-limit": {
        "description": "Requests admitted per window for this client.",
        "schema": {"type": "integer", "minimum": 0},
    },
    "x-ratelimit-remaining": {
        "description": "Requests the client had available before this one.",
        "schema": {"type": "integer", "minimum": 0},
    },
    "x-ratelimit-reset": {
        "description": "Whole seconds until the current window resets.",
        "schema": {"type": "integer", "minimum": 0},
    },
}


def apply_openapi_customizations(app: FastAPI, *, exempt_paths: Iterable[str] = ("/health",)) -> None:
    """Patch FastAPI's OpenAPI generation to describe rate limit behaviour.

    Args:
        app: FastAPI application whose schema is patched.
        exempt_paths: Paths that bypass admission and get no rate limit docs.
    """

    original_openapi = app.openapi
    exempt = frozenset(exempt_paths)

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        headers = components.setdefault("headers", {})
        for name, header in _RATE_LIMIT_HEADERS.items():
            headers.setdefault(name, header)
        header_refs = {name: {"$ref": f"#/components/headers/{name}"} for name in _RATE_LIMIT_HEADERS}

        for path, methods in schema.get("paths", {}).items():
            if path in exempt:
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                responses = method_obj.setdefault("responses", {})
                for code, response in responses.items():
                    if str(code).startswith("2") and isinstance(response, dict):
                        response.setdefault("headers", {}).update(header_refs)
                responses.setdefault(
                    "429",
                    {"description": "Rate limit exceeded for this window.", "headers": dict(header_refs)},
                )
                responses.setdefault(
                    "503",
                    {"description": "Admission could not be determined (rate limit store unavailable)."},
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
