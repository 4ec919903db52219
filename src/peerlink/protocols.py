"""Protocols and enums for peerlink."""

from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from peerlink.messages import IceCandidate, SessionDescription

# Caller-supplied one-shot rendezvous: send one envelope, get the reply
Handler = Callable[[str], Awaitable[str]]


class ConnectionState(Enum):
    """Connectivity state reported by the transport engine."""

    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


class HandshakeRole(Enum):
    """Which side of the negotiation this peer plays."""

    OFFERER = "offerer"
    ANSWERER = "answerer"


class HandshakeState(Enum):
    """Progress of the offer/answer handshake.

    Offerer: IDLE -> OFFER_CREATED -> AWAITING_LOCAL_CANDIDATES ->
        AWAITING_REMOTE_ANSWER -> APPLYING_REMOTE_CANDIDATES -> DONE
    Answerer: IDLE -> REMOTE_OFFER_APPLIED -> ANSWER_CREATED ->
        AWAITING_LOCAL_CANDIDATES -> ANSWER_SENT -> DONE
    Any step may end in FAILED.
    """

    IDLE = "idle"
    OFFER_CREATED = "offer_created"
    AWAITING_LOCAL_CANDIDATES = "awaiting_local_candidates"
    AWAITING_REMOTE_ANSWER = "awaiting_remote_answer"
    APPLYING_REMOTE_CANDIDATES = "applying_remote_candidates"
    REMOTE_OFFER_APPLIED = "remote_offer_applied"
    ANSWER_CREATED = "answer_created"
    ANSWER_SENT = "answer_sent"
    DONE = "done"
    FAILED = "failed"


class DataChannel(Protocol):
    """Protocol for a data channel (aiortc.RTCDataChannel satisfies it)."""

    @property
    def label(self) -> str: ...

    @property
    def readyState(self) -> str: ...

    def send(self, data: str | bytes) -> None: ...

    def on(self, event: str, f: Callable | None = None) -> Any: ...


class TransportEngine(Protocol):
    """Protocol for the real-time transport engine (DI for testing).

    Events, subscribed with ``on(event, handler)``:
        icecandidate(candidate: IceCandidate | None)
        icegatheringstatechange(state: str)
        connectionstatechange(state: str)
        datachannel(channel: DataChannel)
        negotiationneeded()
    """

    def on(self, event: str, f: Callable | None = None) -> Any: ...

    async def create_offer(self) -> SessionDescription: ...

    async def create_answer(self) -> SessionDescription: ...

    async def set_local_description(self, description: SessionDescription) -> None: ...

    async def set_remote_description(self, description: SessionDescription) -> None: ...

    async def add_ice_candidate(self, candidate: IceCandidate | None) -> None:
        """Apply a remote candidate; None signals end of candidates."""
        ...

    def create_data_channel(self, label: str) -> DataChannel: ...

    def add_track(self, track: Any) -> None: ...

    async def close(self) -> None: ...
