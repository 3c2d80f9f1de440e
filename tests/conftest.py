"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any ``admission`` import so the global
settings object is built from test values instead of a developer's .env file.
"""

import asyncio
import os

import pytest

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "3")
os.environ.setdefault("RATE_LIMIT_WINDOW_SECONDS", "60")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from admission.adapters.rate_limit.in_memory import InMemoryWindowStore  # noqa: E402


class FakeClock:
    """Deterministic clock used to test window expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class YieldingStore(InMemoryWindowStore):
    """In-memory store that yields to the event loop before every operation.

    Forces concurrent decisions to interleave between ``query`` and
    ``try_consume``, the way a network backend would.
    """

    async def query(self, key):
        await asyncio.sleep(0)
        return await super().query(key)

    async def try_consume(self, key):
        await asyncio.sleep(0)
        return await super().try_consume(key)

    async def create(self, key, initial_remaining, expires_at):
        await asyncio.sleep(0)
        return await super().create(key, initial_remaining, expires_at)

    async def time_to_live(self, key, default):
        await asyncio.sleep(0)
        return await super().time_to_live(key, default)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryWindowStore:
    return InMemoryWindowStore(clock=clock)


@pytest.fixture
def yielding_store(clock: FakeClock) -> YieldingStore:
    return YieldingStore(clock=clock)
