"""Offer/answer handshake over a one-shot handler.

Each side sends exactly one envelope: the offerer sends its offer with all
of its gathered candidates and receives the answer with the answerer's
candidates as the handler's reply. Nothing is retried; any failure ends the
handshake in FAILED and propagates to the caller.
"""

import asyncio
import logging
import time
from typing import Iterable

from peerlink.candidates import CandidateAggregator, summarize_candidates
from peerlink.codec import decode_answer, decode_offer, encode_answer, encode_offer
from peerlink.config import PeerConfig
from peerlink.errors import HandshakeInProgressError, NegotiationTimeoutError
from peerlink.messages import IceCandidate
from peerlink.protocols import Handler, HandshakeRole, HandshakeState, TransportEngine

logger = logging.getLogger(__name__)

# Per-step elapsed times, level set apart from the rest of the package
timing_logger = logging.getLogger("peerlink.timing")


class Negotiator:
    """Runs the offerer or the answerer flow for one peer, once."""

    def __init__(
        self,
        engine: TransportEngine,
        handler: Handler,
        aggregator: CandidateAggregator,
        config: PeerConfig | None = None,
    ):
        """Initialize negotiator.

        Args:
            engine: Transport engine to drive.
            handler: One-shot rendezvous used to exchange envelopes.
            aggregator: Source of the local candidate set.
            config: Timeouts. Defaults to waiting forever.
        """
        self._engine = engine
        self._handler = handler
        self._aggregator = aggregator
        self._config = config or PeerConfig()
        self._state = HandshakeState.IDLE
        self._role: HandshakeRole | None = None
        self._started: float | None = None
        self._marks: list[tuple[str, float]] = []

    @property
    def state(self) -> HandshakeState:
        """Current handshake state."""
        return self._state

    @property
    def role(self) -> HandshakeRole | None:
        """Role taken by the handshake, or None before it starts."""
        return self._role

    @property
    def timings(self) -> list[tuple[str, float]]:
        """Handshake phases with elapsed milliseconds since the handshake began."""
        return list(self._marks)

    def _begin(self, role: HandshakeRole) -> None:
        if self._role is not None:
            raise HandshakeInProgressError(
                f"Peer already negotiating as {self._role.value} ({self._state.value})"
            )
        self._role = role
        self._started = time.perf_counter()
        self._mark("start")

    def _mark(self, phase: str) -> None:
        elapsed_ms = (time.perf_counter() - self._started) * 1000
        self._marks.append((phase, elapsed_ms))
        timing_logger.info(f"[TIMING] {self._role.value}: {phase} @ {elapsed_ms:.1f}ms")

    def _enter(self, state: HandshakeState) -> None:
        self._state = state
        self._mark(state.value)

    def _finish(self) -> None:
        if self._state is not HandshakeState.DONE:
            self._enter(HandshakeState.FAILED)
        summary = " | ".join(f"{phase}={ms:.0f}ms" for phase, ms in self._marks)
        total = self._marks[-1][1]
        timing_logger.info(
            f"[TIMING] {self._role.value} summary: {summary} (total={total:.0f}ms)"
        )

    async def _wait_local_candidates(self) -> tuple[IceCandidate, ...]:
        self._enter(HandshakeState.AWAITING_LOCAL_CANDIDATES)
        return await self._aggregator.gate.wait(timeout=self._config.gather_timeout)

    async def _call_handler(self, encoded: str) -> str:
        timeout = self._config.handler_timeout
        if timeout is None:
            return await self._handler(encoded)
        try:
            return await asyncio.wait_for(self._handler(encoded), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise NegotiationTimeoutError(f"Handler did not reply within {timeout}s") from e

    async def _apply_remote_candidates(self, candidates: Iterable[IceCandidate]) -> None:
        for candidate in candidates:
            await self._engine.add_ice_candidate(candidate)
        # End of candidates
        await self._engine.add_ice_candidate(None)

    async def offer(self) -> None:
        """Run the offerer flow.

        Raises:
            HandshakeInProgressError: If a handshake was already started.
            NoCandidatesFoundError: If gathering found nothing. The handler
                is not called.
            ValidationError: If the reply is not a valid answer envelope.
            NegotiationTimeoutError: If a configured timeout elapses.
        """
        self._begin(HandshakeRole.OFFERER)
        try:
            offer = await self._engine.create_offer()
            await self._engine.set_local_description(offer)
            self._enter(HandshakeState.OFFER_CREATED)

            candidates = await self._wait_local_candidates()

            self._enter(HandshakeState.AWAITING_REMOTE_ANSWER)
            reply = await self._call_handler(encode_offer(offer, candidates))
            negotiate_answer = decode_answer(reply)
            logger.info(f"Remote answer: {summarize_candidates(negotiate_answer.candidates)}")

            await self._engine.set_remote_description(negotiate_answer.answer)
            self._enter(HandshakeState.APPLYING_REMOTE_CANDIDATES)
            await self._apply_remote_candidates(negotiate_answer.candidates)
            self._enter(HandshakeState.DONE)
        finally:
            self._finish()

    async def answer(self, encoded_offer: str) -> None:
        """Run the answerer flow for one encoded offer.

        The envelope is decoded before the engine is touched, so a malformed
        offer leaves the engine unchanged. The handler's reply to the answer
        is awaited and discarded.

        Raises:
            HandshakeInProgressError: If a handshake was already started.
            ValidationError: If the offer is not a valid offer envelope.
            NoCandidatesFoundError: If local gathering found nothing.
            NegotiationTimeoutError: If a configured timeout elapses.
        """
        self._begin(HandshakeRole.ANSWERER)
        try:
            negotiate_offer = decode_offer(encoded_offer)
            logger.info(f"Remote offer: {summarize_candidates(negotiate_offer.candidates)}")

            await self._engine.set_remote_description(negotiate_offer.offer)
            self._enter(HandshakeState.REMOTE_OFFER_APPLIED)

            answer = await self._engine.create_answer()
            await self._engine.set_local_description(answer)
            self._enter(HandshakeState.ANSWER_CREATED)

            await self._apply_remote_candidates(negotiate_offer.candidates)

            candidates = await self._wait_local_candidates()

            self._enter(HandshakeState.ANSWER_SENT)
            reply = await self._call_handler(encode_answer(answer, candidates))
            if reply:
                logger.debug("Ignoring handler reply to answer")
            self._enter(HandshakeState.DONE)
        finally:
            self._finish()
