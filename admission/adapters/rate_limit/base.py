"""Window store interfaces.

The decision engine depends on this abstraction (not a concrete backend) so the
in-process store can be swapped for Redis or another shared store without
touching admission logic.

Every operation is scoped to a single client key and must be linearizable per
key. Operations on different keys are independent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class CounterEntry:
    """Per-key window counter.

    Attributes:
        remaining: Units still available in the window.
        expires_at: UNIX epoch seconds when the window ends. Fixed at creation.
    """

    remaining: int
    expires_at: float


@dataclass(frozen=True)
class Admitted:
    """One unit was consumed; ``remaining`` is the value after the decrement."""

    remaining: int


@dataclass(frozen=True)
class Exhausted:
    """The key has a live entry with no units left."""


@dataclass(frozen=True)
class NotFound:
    """The key has no live entry (never created, removed, or expired)."""


ConsumeOutcome = Union[Admitted, Exhausted, NotFound]


class AbstractWindowStore(ABC):
    """Interface for fixed-window counter stores."""

    @abstractmethod
    async def query(self, key: str) -> int | None:
        """Return the remaining count for ``key``, or None without a live entry."""
        raise NotImplementedError

    @abstractmethod
    async def try_consume(self, key: str) -> ConsumeOutcome:
        """Check and decrement the counter for ``key`` in one atomic step.

        Args:
            key: Client key.

        Returns:
            Admitted with the post-decrement count, Exhausted when the live
            entry is at zero, or NotFound when there is no live entry.
        """
        raise NotImplementedError

    @abstractmethod
    async def create(self, key: str, initial_remaining: int, expires_at: float) -> bool:
        """Install a fresh window for ``key``.

        An expired entry is overwritten. A live entry is left untouched so two
        concurrent first requests cannot both open a full window.

        Args:
            key: Client key.
            initial_remaining: Units available in the new window.
            expires_at: UNIX epoch seconds when the new window ends.

        Returns:
            True if the entry was installed, False if a live entry already exists.
        """
        raise NotImplementedError

    @abstractmethod
    async def time_to_live(self, key: str, default: float) -> float:
        """Return seconds until the window for ``key`` ends.

        Args:
            key: Client key.
            default: Value returned when the key has no live entry.
        """
        raise NotImplementedError

    @abstractmethod
    async def remove(self, key: str) -> int:
        """Delete the entry for ``key`` and return its remaining count (0 if absent)."""
        raise NotImplementedError
