"""Unit tests for the in-memory window store."""

import asyncio

import pytest

from admission.adapters.rate_limit.base import Admitted, Exhausted, NotFound
from admission.adapters.rate_limit.in_memory import InMemoryWindowStore


@pytest.mark.asyncio
async def test_query_returns_none_for_unknown_key(store: InMemoryWindowStore) -> None:
    assert await store.query("k") is None


@pytest.mark.asyncio
async def test_create_then_query(store: InMemoryWindowStore, clock) -> None:
    assert await store.create("k", 5, clock() + 60) is True

    assert await store.query("k") == 5
    assert len(store) == 1


@pytest.mark.asyncio
async def test_try_consume_decrements_until_exhausted(store: InMemoryWindowStore, clock) -> None:
    await store.create("k", 2, clock() + 60)

    assert await store.try_consume("k") == Admitted(remaining=1)
    assert await store.try_consume("k") == Admitted(remaining=0)
    assert await store.try_consume("k") == Exhausted()
    assert await store.query("k") == 0


@pytest.mark.asyncio
async def test_try_consume_unknown_key_is_not_found(store: InMemoryWindowStore) -> None:
    assert await store.try_consume("missing") == NotFound()


@pytest.mark.asyncio
async def test_create_does_not_overwrite_live_entry(store: InMemoryWindowStore, clock) -> None:
    await store.create("k", 3, clock() + 60)
    await store.try_consume("k")

    assert await store.create("k", 3, clock() + 60) is False
    assert await store.query("k") == 2


@pytest.mark.asyncio
async def test_expired_entry_is_treated_as_absent(store: InMemoryWindowStore, clock) -> None:
    await store.create("k", 3, clock() + 10)

    clock.advance(10)

    assert await store.query("k") is None
    assert await store.try_consume("k") == NotFound()
    assert len(store) == 0


@pytest.mark.asyncio
async def test_create_overwrites_expired_entry(store: InMemoryWindowStore, clock) -> None:
    await store.create("k", 0, clock() + 10)
    clock.advance(11)

    assert await store.create("k", 4, clock() + 10) is True
    assert await store.query("k") == 4


@pytest.mark.asyncio
async def test_create_sweeps_other_expired_entries(store: InMemoryWindowStore, clock) -> None:
    await store.create("old-1", 1, clock() + 5)
    await store.create("old-2", 1, clock() + 5)
    clock.advance(6)

    await store.create("new", 1, clock() + 5)

    assert len(store) == 1


@pytest.mark.asyncio
async def test_expiry_is_fixed_at_creation(store: InMemoryWindowStore, clock) -> None:
    await store.create("k", 5, clock() + 60)

    clock.advance(20)
    await store.try_consume("k")

    assert await store.time_to_live("k", default=60.0) == pytest.approx(40.0)


@pytest.mark.asyncio
async def test_time_to_live_falls_back_for_absent_key(store: InMemoryWindowStore) -> None:
    assert await store.time_to_live("missing", default=60.0) == 60.0


@pytest.mark.asyncio
async def test_remove_returns_previous_remaining(store: InMemoryWindowStore, clock) -> None:
    await store.create("k", 3, clock() + 60)
    await store.try_consume("k")

    assert await store.remove("k") == 2
    assert await store.query("k") is None
    assert await store.remove("k") == 0


@pytest.mark.asyncio
async def test_remove_expired_entry_returns_zero(store: InMemoryWindowStore, clock) -> None:
    await store.create("k", 3, clock() + 5)
    clock.advance(5)

    assert await store.remove("k") == 0


@pytest.mark.asyncio
async def test_keys_are_isolated(store: InMemoryWindowStore, clock) -> None:
    await store.create("a", 1, clock() + 60)
    await store.create("b", 1, clock() + 60)

    assert await store.try_consume("a") == Admitted(remaining=0)
    assert await store.try_consume("a") == Exhausted()
    assert await store.try_consume("b") == Admitted(remaining=0)


@pytest.mark.asyncio
async def test_concurrent_consumes_never_over_admit(yielding_store, clock) -> None:
    n = 20
    await yielding_store.create("k", n - 1, clock() + 60)

    outcomes = await asyncio.gather(*(yielding_store.try_consume("k") for _ in range(n)))

    admitted = [o for o in outcomes if isinstance(o, Admitted)]
    assert len(admitted) == n - 1
    assert outcomes.count(Exhausted()) == 1
    assert sorted(o.remaining for o in admitted) == list(range(n - 1))


@pytest.mark.asyncio
async def test_invalid_arguments(store: InMemoryWindowStore, clock) -> None:
    with pytest.raises(ValueError):
        await store.query("")

    with pytest.raises(ValueError):
        await store.create("k", -1, clock() + 60)
