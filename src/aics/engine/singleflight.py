"""Single-flight memoization for expensive keyed async loads."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class _InFlight(Generic[V]):
    future: asyncio.Future[V]


@dataclass(frozen=True)
class _Ready(Generic[V]):
    value: V


@dataclass(frozen=True)
class _Failed:
    error: Exception


class SingleFlight(Generic[K, V]):
    """Collapses concurrent loads of the same key into one.

    Each key is in one of three states: in-flight (a shared future every
    caller awaits), ready, or failed. Ready and failed are terminal: a
    failed key re-raises the same exception on every call and the loader
    is never invoked again for it.

    Terminal states hold plain values, so a SingleFlight may outlive the
    event loop that produced them.

    Usage::

        flights: SingleFlight[str, Grammar] = SingleFlight()
        grammar = await flights.get("python", load_python)
    """

    def __init__(self) -> None:
        self._states: dict[K, _InFlight[V] | _Ready[V] | _Failed] = {}

    async def get(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        """Return the value for key, running loader at most once.

        Args:
            key: Cache key.
            loader: Zero-argument coroutine factory producing the value.

        Returns:
            The loaded (or memoized) value.

        Raises:
            Exception: Whatever the loader raised, memoized for the key.
        """
        state = self._states.get(key)
        if isinstance(state, _Ready):
            return state.value
        if isinstance(state, _Failed):
            raise state.error
        if isinstance(state, _InFlight):
            return await asyncio.shield(state.future)

        future: asyncio.Future[V] = asyncio.get_running_loop().create_future()
        self._states[key] = _InFlight(future)
        try:
            value = await loader()
        except Exception as exc:
            self._states[key] = _Failed(exc)
            future.set_exception(exc)
            # The first caller re-raises below; waiters retrieve it via shield.
            future.exception()
            raise
        except BaseException:
            # Cancelled mid-load: forget the key so a later caller can retry.
            del self._states[key]
            future.cancel()
            raise
        self._states[key] = _Ready(value)
        future.set_result(value)
        return value

    def peek(self, key: K) -> str:
        """Return the state name for key: "missing", "in-flight", "ready" or "failed"."""
        state = self._states.get(key)
        if state is None:
            return "missing"
        if isinstance(state, _InFlight):
            return "in-flight"
        if isinstance(state, _Ready):
            return "ready"
        return "failed"
