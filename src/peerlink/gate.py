"""Single-resolution readiness gate.

A Gate starts pending and moves to resolved or rejected exactly once. Any
number of tasks may wait on it; all of them observe the same outcome.
Later resolve/reject calls are ignored.

Usage:
    gate, resolve, reject = Gate.create()
    ...
    resolve(candidates)       # from an engine callback
    ...
    candidates = await gate.wait(timeout=10.0)
"""

import asyncio
from enum import Enum
from typing import Callable, Generic, TypeVar

from peerlink.errors import NegotiationTimeoutError

T = TypeVar("T")


class GateState(Enum):
    """State of a readiness gate."""

    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class Gate(Generic[T]):
    """Single-resolution future shared by many waiters."""

    def __init__(self, name: str = "gate"):
        self.name = name
        self._state = GateState.PENDING
        self._value: T | None = None
        self._error: BaseException | None = None
        # Futures are created lazily so a gate can be built outside a running loop
        self._waiters: list[asyncio.Future] = []

    @classmethod
    def create(
        cls, name: str = "gate"
    ) -> tuple["Gate[T]", Callable[[T], bool], Callable[[BaseException], bool]]:
        """Create a gate and return it with its resolve and reject functions."""
        gate: Gate[T] = cls(name)
        return gate, gate.resolve, gate.reject

    @property
    def state(self) -> GateState:
        return self._state

    def done(self) -> bool:
        """True once the gate is resolved or rejected."""
        return self._state is not GateState.PENDING

    def resolve(self, value: T) -> bool:
        """Resolve the gate.

        Returns:
            True if this call fixed the outcome, False if it was already done.
        """
        if self.done():
            return False
        self._state = GateState.RESOLVED
        self._value = value
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(value)
        self._waiters.clear()
        return True

    def reject(self, error: BaseException) -> bool:
        """Reject the gate.

        Returns:
            True if this call fixed the outcome, False if it was already done.
        """
        if self.done():
            return False
        self._state = GateState.REJECTED
        self._error = error
        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_exception(error)
        self._waiters.clear()
        return True

    async def wait(self, timeout: float | None = None) -> T:
        """Wait for the outcome.

        Args:
            timeout: Seconds to wait, or None to wait forever.

        Returns:
            The resolved value.

        Raises:
            The rejection error, or NegotiationTimeoutError on timeout. A
            timeout leaves the gate pending.
        """
        if self._state is GateState.RESOLVED:
            return self._value  # type: ignore[return-value]
        if self._state is GateState.REJECTED:
            raise self._error  # type: ignore[misc]

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout=timeout)
        except asyncio.TimeoutError as e:
            if not waiter.cancelled():
                # Gate was rejected with a timeout error of its own
                raise
            raise NegotiationTimeoutError(
                f"Timed out after {timeout}s waiting for {self.name}"
            ) from e
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def __await__(self):
        return self.wait().__await__()

    def __repr__(self) -> str:
        return f"<Gate {self.name} {self._state.value}>"
