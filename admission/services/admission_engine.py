"""Fixed-window admission decisions.

The engine turns a request into an admit/reject decision by combining an
identifier strategy with a window store:

1. Derive the client key (failure => ``IdentifierUnavailableError``).
2. Query the live window for the key.
3. No window: open one and admit. The opening request consumes its own unit.
4. Exhausted window: reject with the window's time to live as reset.
5. Available window: consume one unit atomically and admit. A lost race falls
   back to step 4 (``Exhausted``) or step 3 (``NotFound``).

Reported ``remaining`` is the value the caller had available *before* its own
request was counted, so a quota of 3 reports 3, 2, 1 and then rejects with 0.

Store failures never become an admit or a reject. They surface as
``AdmissionIndeterminateError`` subclasses and the pipeline adapter chooses
between failing open and failing closed.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from starlette.requests import Request

from admission.adapters.rate_limit.base import AbstractWindowStore, Admitted, Exhausted, NotFound
from admission.core.config import RateLimitSettings
from admission.core.errors import (
    AppError,
    ConfigurationAppError,
    IdentifierUnavailableError,
    StoreProtocolError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from admission.core.logging import hash_client_key
from admission.services.annotator import rate_limit_headers
from admission.services.identifiers import Identifier, peer_address, resolve_identifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable admission parameters shared by all in-flight decisions.

    Attributes:
        window_seconds: Fixed window length in seconds.
        max_requests: Requests admitted per client key per window.
        identifier: Strategy mapping a request to its client key.
    """

    window_seconds: int
    max_requests: int
    identifier: Identifier = field(default=peer_address, compare=False)

    def __post_init__(self) -> None:
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")

    @classmethod
    def from_settings(cls, rate_limit_settings: RateLimitSettings) -> "RateLimitConfig":
        """Build a config from environment-driven settings.

        Raises:
            ConfigurationAppError: If the settings describe an invalid config.
        """
        try:
            return cls(
                window_seconds=rate_limit_settings.window_seconds,
                max_requests=rate_limit_settings.max_requests,
                identifier=resolve_identifier(
                    rate_limit_settings.identifier,
                    api_key_header_name=rate_limit_settings.api_key_header,
                ),
            )
        except ValueError as exc:
            raise ConfigurationAppError(
                code="invalid_rate_limit_config",
                message=str(exc),
            ) from exc


@dataclass(frozen=True)
class AdmissionDecision:
    """Outcome of one admission decision.

    Attributes:
        admitted: Whether the request may be forwarded downstream.
        client_key: Key the decision was scoped to.
        limit: Configured quota per window.
        remaining: Units available before this request (0 when rejected).
        reset_seconds: Whole seconds until the window resets.
    """

    admitted: bool
    client_key: str
    limit: int
    remaining: int
    reset_seconds: int

    @property
    def headers(self) -> dict[str, str]:
        return rate_limit_headers(self.limit, self.remaining, self.reset_seconds)


class AdmissionEngine:
    """Fixed-window admission control over a pluggable window store."""

    # Bounds create/consume retries when the key keeps expiring or vanishing
    # between store calls.
    _MAX_ATTEMPTS = 3

    def __init__(
        self,
        config: RateLimitConfig,
        store: AbstractWindowStore,
        *,
        clock: Callable[[], float] = time.time,
        store_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Immutable quota and identifier configuration.
            store: Window store shared by all decisions.
            clock: Time source function returning UNIX time in seconds.
            store_timeout_seconds: Optional deadline applied to each store call.

        Raises:
            ValueError: If store_timeout_seconds is not positive.
        """
        if store_timeout_seconds is not None and store_timeout_seconds <= 0:
            raise ValueError("store_timeout_seconds must be > 0")

        self._config = config
        self._store = store
        self._clock = clock
        self._store_timeout = store_timeout_seconds

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def store(self) -> AbstractWindowStore:
        return self._store

    async def decide(self, request: Request) -> AdmissionDecision:
        """Decide whether ``request`` is admitted, consuming quota if so.

        Args:
            request: Incoming request.

        Returns:
            AdmissionDecision with admit flag and header values.

        Raises:
            IdentifierUnavailableError: If no client key can be derived.
            StoreUnavailableError: If a store call fails.
            StoreTimeoutError: If a store call exceeds the configured deadline.
            StoreProtocolError: If the store answers with malformed values.
        """
        client_key = self._extract_key(request)
        remaining = self._check_remaining(await self._call("query", lambda: self._store.query(client_key)))

        for _ in range(self._MAX_ATTEMPTS):
            if remaining is None:
                if await self._open_window(client_key):
                    return self._new_window_decision(client_key)
                # Another decision opened the window first; consume from it.
            elif remaining == 0:
                return await self._reject(client_key)

            outcome = await self._call("try_consume", lambda: self._store.try_consume(client_key))
            if isinstance(outcome, Admitted):
                after = self._check_remaining(outcome.remaining, upper=self._config.max_requests - 1)
                return await self._admit(client_key, available=after + 1)
            if isinstance(outcome, Exhausted):
                return await self._reject(client_key)
            if isinstance(outcome, NotFound):
                remaining = None
                continue
            raise StoreProtocolError(
                code="store_bad_outcome",
                message="Window store returned an unknown consume outcome",
                details={"operation": "try_consume", "context": {"type": type(outcome).__name__}},
            )

        raise StoreProtocolError(
            code="store_inconsistent",
            message="Window store lost the client window between create and consume",
            details={"operation": "try_consume"},
        )

    async def reset(self, client_key: str) -> int:
        """Remove a client's window so its next request opens a fresh one.

        Returns:
            Remaining units the removed window still had (0 if none).
        """
        removed = await self._call("remove", lambda: self._store.remove(client_key))
        logger.info(
            "rate_limit.window_removed",
            extra={"key_hash": hash_client_key(client_key), "remaining": removed},
        )
        return removed

    def _extract_key(self, request: Request) -> str:
        try:
            client_key = self._config.identifier(request)
        except AppError:
            raise
        except Exception as exc:
            raise IdentifierUnavailableError(
                code="identifier_failed",
                message="Identifier could not derive a client key",
                details={"context": {"error_type": type(exc).__name__}},
            ) from exc

        if not isinstance(client_key, str):
            raise IdentifierUnavailableError(
                code="client_key_invalid",
                message="Identifier returned a non-string client key",
                details={"context": {"type": type(client_key).__name__}},
            )
        if not client_key:
            raise IdentifierUnavailableError(
                code="client_key_empty",
                message="Identifier produced an empty client key",
            )
        return client_key

    async def _open_window(self, client_key: str) -> bool:
        expires_at = self._clock() + self._config.window_seconds
        created = await self._call(
            "create",
            lambda: self._store.create(client_key, self._config.max_requests - 1, expires_at),
        )
        if created:
            logger.info(
                "rate_limit.window_created",
                extra={
                    "key_hash": hash_client_key(client_key),
                    "limit": self._config.max_requests,
                    "window_s": self._config.window_seconds,
                },
            )
        return bool(created)

    def _new_window_decision(self, client_key: str) -> AdmissionDecision:
        return AdmissionDecision(
            admitted=True,
            client_key=client_key,
            limit=self._config.max_requests,
            remaining=self._config.max_requests,
            reset_seconds=self._config.window_seconds,
        )

    async def _admit(self, client_key: str, *, available: int) -> AdmissionDecision:
        reset_seconds = await self._reset_seconds(client_key)
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_hash": hash_client_key(client_key),
                "limit": self._config.max_requests,
                "remaining": available,
                "reset_s": reset_seconds,
            },
        )
        return AdmissionDecision(
            admitted=True,
            client_key=client_key,
            limit=self._config.max_requests,
            remaining=available,
            reset_seconds=reset_seconds,
        )

    async def _reject(self, client_key: str) -> AdmissionDecision:
        reset_seconds = await self._reset_seconds(client_key)
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": hash_client_key(client_key),
                "limit": self._config.max_requests,
                "remaining": 0,
                "reset_s": reset_seconds,
            },
        )
        return AdmissionDecision(
            admitted=False,
            client_key=client_key,
            limit=self._config.max_requests,
            remaining=0,
            reset_seconds=reset_seconds,
        )

    async def _reset_seconds(self, client_key: str) -> int:
        ttl = await self._call(
            "time_to_live",
            lambda: self._store.time_to_live(client_key, float(self._config.window_seconds)),
        )
        if not isinstance(ttl, (int, float)) or isinstance(ttl, bool) or ttl < 0:
            raise StoreProtocolError(
                code="store_bad_ttl",
                message="Window store returned an invalid time to live",
                details={"operation": "time_to_live", "context": {"value": repr(ttl)}},
            )
        return int(math.ceil(ttl))

    def _check_remaining(self, value: Any, *, upper: int | None = None) -> int | None:
        """Validate a remaining count reported by the store."""
        if value is None and upper is None:
            return None
        limit = self._config.max_requests if upper is None else upper
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= limit:
            raise StoreProtocolError(
                code="store_bad_remaining",
                message="Window store returned an out-of-range remaining count",
                details={"context": {"value": repr(value), "max": limit}},
            )
        return value

    async def _call(self, operation: str, invoke: Callable[[], Awaitable[T]]) -> T:
        """Run a store call, mapping backend failures onto admission errors.

        ``invoke`` is called inside the try block so backends that raise before
        returning their coroutine are mapped the same way.
        """
        try:
            if self._store_timeout is None:
                return await invoke()
            return await asyncio.wait_for(invoke(), timeout=self._store_timeout)
        except asyncio.TimeoutError as exc:
            raise StoreTimeoutError(
                code="store_timeout",
                message=f"Window store {operation} timed out",
                details={"operation": operation, "timeout_seconds": self._store_timeout or 0.0},
            ) from exc
        except AppError:
            raise
        except Exception as exc:
            raise StoreUnavailableError(
                code="store_unavailable",
                message=f"Window store {operation} failed",
                details={
                    "operation": operation,
                    "backend": type(self._store).__name__,
                    "context": {"error_type": type(exc).__name__},
                },
            ) from exc
