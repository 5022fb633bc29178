"""Tests for single-flight memoized loading."""

from __future__ import annotations

import asyncio

import pytest

from aics.engine.singleflight import SingleFlight


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()
        gate = asyncio.Event()
        calls = 0

        async def loader() -> int:
            nonlocal calls
            calls += 1
            await gate.wait()
            return 42

        tasks = [asyncio.create_task(flights.get("k", loader)) for _ in range(5)]
        await asyncio.sleep(0)
        assert flights.peek("k") == "in-flight"

        gate.set()
        results = await asyncio.gather(*tasks)

        assert results == [42] * 5
        assert calls == 1
        assert flights.peek("k") == "ready"

    @pytest.mark.asyncio
    async def test_ready_value_is_reused(self) -> None:
        flights: SingleFlight[str, object] = SingleFlight()
        sentinel = object()

        async def loader() -> object:
            return sentinel

        assert await flights.get("k", loader) is sentinel
        assert await flights.get("k", loader) is sentinel

    @pytest.mark.asyncio
    async def test_failure_is_memoized(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()
        calls = 0

        async def loader() -> int:
            nonlocal calls
            calls += 1
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await flights.get("k", loader)
        with pytest.raises(ValueError, match="boom"):
            await flights.get("k", loader)

        assert calls == 1
        assert flights.peek("k") == "failed"

    @pytest.mark.asyncio
    async def test_waiters_see_the_same_failure(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()
        gate = asyncio.Event()
        error = RuntimeError("grammar missing")

        async def loader() -> int:
            await gate.wait()
            raise error

        tasks = [asyncio.create_task(flights.get("k", loader)) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(r is error for r in results)

    @pytest.mark.asyncio
    async def test_keys_are_independent(self) -> None:
        flights: SingleFlight[str, str] = SingleFlight()

        async def fail() -> str:
            raise ValueError("nope")

        async def ok() -> str:
            return "fine"

        with pytest.raises(ValueError):
            await flights.get("a", fail)
        assert await flights.get("b", ok) == "fine"
        assert flights.peek("a") == "failed"
        assert flights.peek("b") == "ready"
        assert flights.peek("c") == "missing"

    @pytest.mark.asyncio
    async def test_cancelled_load_can_be_retried(self) -> None:
        flights: SingleFlight[str, int] = SingleFlight()

        async def slow() -> int:
            await asyncio.sleep(60)
            return 1

        task = asyncio.create_task(flights.get("k", slow))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert flights.peek("k") == "missing"

        async def fast() -> int:
            return 2

        assert await flights.get("k", fast) == 2
