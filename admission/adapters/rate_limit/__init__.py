"""Window store adapters.

This package provides a small abstraction layer so deployments can start with
the in-memory store and later migrate to Redis or another shared store without
changing the decision engine.
"""

from admission.adapters.rate_limit.base import (
    AbstractWindowStore,
    Admitted,
    ConsumeOutcome,
    CounterEntry,
    Exhausted,
    NotFound,
)
from admission.adapters.rate_limit.in_memory import InMemoryWindowStore

__all__ = [
    "AbstractWindowStore",
    "Admitted",
    "ConsumeOutcome",
    "CounterEntry",
    "Exhausted",
    "InMemoryWindowStore",
    "NotFound",
]
