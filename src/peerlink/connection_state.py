"""Tracks engine connectivity and drives the "connected" gate."""

import logging

from peerlink.errors import ConnectionFailedError
from peerlink.gate import Gate
from peerlink.protocols import ConnectionState

logger = logging.getLogger(__name__)


class ConnectionStateTracker:
    """Maps connection-state notifications onto the connected gate.

    Only "connected" and "failed" move the gate. A transient "disconnected"
    is recorded but not treated as a failure.
    """

    def __init__(self) -> None:
        self._state = ConnectionState.NEW
        self._gate: Gate[None] = Gate("connection")

    @property
    def state(self) -> ConnectionState:
        """Last state reported by the engine."""
        return self._state

    @property
    def gate(self) -> Gate[None]:
        return self._gate

    def update(self, state: str) -> None:
        """Handle a connection-state notification.

        Args:
            state: Engine state string ("new", "connecting", "connected", ...).
        """
        try:
            new_state = ConnectionState(state)
        except ValueError:
            logger.warning(f"Ignoring unknown connection state: {state!r}")
            return

        logger.info(f"Connection state: {new_state.value}")
        self._state = new_state

        if new_state is ConnectionState.CONNECTED:
            self._gate.resolve(None)
        elif new_state is ConnectionState.FAILED:
            self._gate.reject(ConnectionFailedError("Unable to connect"))
