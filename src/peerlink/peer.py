"""Peer: one side of a serverless WebRTC session."""

import asyncio
import logging
from typing import Any, Callable

from peerlink.candidates import CandidateAggregator
from peerlink.config import PeerConfig
from peerlink.connection_state import ConnectionStateTracker
from peerlink.errors import (
    ChannelNotOpenError,
    HandshakeInProgressError,
    InvariantViolation,
    PeerClosedError,
)
from peerlink.messages import IceCandidate
from peerlink.negotiation import Negotiator
from peerlink.protocols import (
    ConnectionState,
    DataChannel,
    Handler,
    HandshakeRole,
    HandshakeState,
    TransportEngine,
)

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str | bytes], Any]


class Peer:
    """Owns a transport engine, its data channel and the handshake state.

    The offering side calls ``start()``; the other side passes the offer it
    received to ``accept()``. Both then wait on ``connected()``.

    Engine events are subscribed once here and never unsubscribed.
    """

    DATA_CHANNEL_LABEL = "main"

    def __init__(
        self,
        handler: Handler,
        engine: TransportEngine | None = None,
        config: PeerConfig | None = None,
    ):
        """Initialize peer.

        Args:
            handler: One-shot rendezvous that delivers an envelope to the
                remote peer and returns its reply.
            engine: Transport engine (for testing). Defaults to aiortc.
            config: STUN servers and timeouts.
        """
        self._config = config or PeerConfig()
        self._handler = handler
        if engine is None:
            from peerlink.engine import AiortcEngine

            engine = AiortcEngine(stun_servers=self._config.stun_servers)
        self._engine = engine
        self._channel: DataChannel | None = None
        self._message_callback: MessageCallback | None = None
        self._closed = False

        self._aggregator = CandidateAggregator()
        self._tracker = ConnectionStateTracker()
        self._negotiator = Negotiator(engine, handler, self._aggregator, self._config)
        self._handshake: asyncio.Task | None = None

        engine.on("icecandidate", self._on_ice_candidate)
        engine.on("icegatheringstatechange", self._on_ice_gathering_state_change)
        engine.on("connectionstatechange", self._tracker.update)
        engine.on("datachannel", self._on_datachannel)
        engine.on("negotiationneeded", self._on_negotiation_needed)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> PeerConfig:
        return self._config

    @property
    def engine(self) -> TransportEngine:
        return self._engine

    @property
    def channel(self) -> DataChannel | None:
        """Data channel, once created locally or received from the remote."""
        return self._channel

    @property
    def state(self) -> ConnectionState:
        """Last connection state reported by the engine."""
        return self._tracker.state

    @property
    def handshake_state(self) -> HandshakeState:
        return self._negotiator.state

    @property
    def role(self) -> HandshakeRole | None:
        return self._negotiator.role

    @property
    def local_candidates(self) -> tuple[IceCandidate, ...]:
        return self._aggregator.candidates

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def _on_ice_candidate(self, candidate: IceCandidate | None) -> None:
        # None marks the end of candidates; completion comes from the gathering state
        if candidate is not None:
            self._aggregator.add(candidate)

    def _on_ice_gathering_state_change(self, state: str) -> None:
        logger.debug(f"ICE gathering state: {state}")
        if state == "complete":
            self._aggregator.complete()

    def _on_datachannel(self, channel: DataChannel) -> None:
        logger.info(f"Data channel received: {channel.label}")
        if self._channel is not None:
            logger.error("Assertion Error: got multiple channels")
            raise InvariantViolation("got multiple channels")
        self._attach_channel(channel)

    def _on_negotiation_needed(self) -> None:
        if self._closed:
            logger.debug("Peer closed, ignoring negotiationneeded")
            return
        if self._handshake is not None:
            logger.debug("Handshake already started, ignoring negotiationneeded")
            return
        logger.info("Negotiation needed")
        self._begin_handshake(self._negotiator.offer())

    def _begin_handshake(self, flow) -> asyncio.Task:
        self._handshake = asyncio.create_task(flow)
        self._handshake.add_done_callback(self._on_handshake_done)
        return self._handshake

    def _on_handshake_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Handshake cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Handshake failed: {error!r}")
        else:
            logger.info("Handshake complete")

    async def _await_handshake(self) -> None:
        try:
            await self._handshake
        except asyncio.CancelledError:
            if self._closed:
                raise PeerClosedError("Peer closed") from None
            raise

    # ------------------------------------------------------------------
    # Data channel
    # ------------------------------------------------------------------

    def _attach_channel(self, channel: DataChannel) -> None:
        self._channel = channel

        @channel.on("open")
        def on_open():
            logger.info(f"Data channel open: {channel.label}")

        @channel.on("close")
        def on_close():
            logger.info(f"Data channel closed: {channel.label}")

        channel.on("message", self._dispatch_message)

    def _dispatch_message(self, message: str | bytes) -> Any:
        if self._message_callback is None:
            logger.debug("Dropping message, no callback registered")
            return None
        # A coroutine returned here is scheduled by the emitter
        return self._message_callback(message)

    def on_message(self, callback: MessageCallback) -> None:
        """Register callback for incoming data channel messages.

        Applies to the current channel and to one received later. A later
        call replaces the callback.

        Args:
            callback: Function or coroutine function called with the message.
        """
        self._message_callback = callback

    def send(self, data: str | bytes) -> None:
        """Send data over the data channel.

        Raises:
            ChannelNotOpenError: If there is no open channel.
        """
        if self._channel is None or self._channel.readyState != "open":
            raise ChannelNotOpenError("Data channel not open")
        self._channel.send(data)

    def add_track(self, track: Any) -> None:
        """Add a media track to the session.

        Call before ``start()``, in the same step, so the offer includes it.
        """
        self._engine.add_track(track)

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the data channel and run the offerer handshake.

        Returns once the answer and the remote candidates are applied; use
        ``connected()`` to wait for connectivity.

        Raises:
            HandshakeInProgressError: If this peer already has a channel or
                is answering.
            PeerClosedError: If the peer is closed, before or during the handshake.
            NoCandidatesFoundError, ValidationError, NegotiationTimeoutError:
                From the offerer flow.
        """
        if self._closed:
            raise PeerClosedError("Peer closed")
        if self._channel is not None or self._negotiator.role is HandshakeRole.ANSWERER:
            raise HandshakeInProgressError("start() needs a peer with no handshake")

        self._attach_channel(self._engine.create_data_channel(self.DATA_CHANNEL_LABEL))

        # Engines that do not raise negotiationneeded get an explicit start
        if self._handshake is None:
            self._begin_handshake(self._negotiator.offer())
        await self._await_handshake()

    async def accept(self, encoded_offer: str) -> None:
        """Answer an encoded offer received from the remote peer.

        Raises:
            HandshakeInProgressError: If this peer already has a handshake.
            PeerClosedError: If the peer is closed, before or during the handshake.
            ValidationError, NoCandidatesFoundError, NegotiationTimeoutError:
                From the answerer flow.
        """
        if self._closed:
            raise PeerClosedError("Peer closed")
        if self._handshake is not None:
            raise HandshakeInProgressError("Peer already has a handshake")
        self._begin_handshake(self._negotiator.answer(encoded_offer))
        await self._await_handshake()

    async def connected(self, timeout: float | None = None) -> None:
        """Wait until the engine reports the connection as connected.

        Args:
            timeout: Seconds to wait. Defaults to the configured connect_timeout.

        Raises:
            ConnectionFailedError: If the engine reports failure.
            NegotiationTimeoutError: If the timeout elapses.
            PeerClosedError: If the peer is closed first.
        """
        if timeout is None:
            timeout = self._config.connect_timeout
        await self._tracker.gate.wait(timeout=timeout)

    async def close(self) -> None:
        """Close the engine, stop an unfinished handshake and release pending gates.

        This method is idempotent.
        """
        if self._closed:
            return
        self._closed = True
        handshake = self._handshake
        if handshake and not handshake.done() and handshake is not asyncio.current_task():
            handshake.cancel()
        self._aggregator.gate.reject(PeerClosedError("Peer closed"))
        self._tracker.gate.reject(PeerClosedError("Peer closed"))
        await self._engine.close()
        logger.info("Peer closed")

    async def __aenter__(self):
        """Enter async context."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context."""
        await self.close()
