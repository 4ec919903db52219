"""Local ICE candidate aggregation.

Candidates are collected until the engine reports gathering complete, then
released all at once through a gate. There is no trickle delivery: the
whole set travels in a single envelope.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from peerlink.errors import NoCandidatesFoundError
from peerlink.gate import Gate
from peerlink.messages import IceCandidate

logger = logging.getLogger(__name__)


@dataclass
class CandidateSummary:
    """Counts of candidates by type."""

    count: int
    host: int
    srflx: int
    relay: int

    def __str__(self) -> str:
        return (
            f"{self.count} candidates "
            f"(host={self.host}, srflx={self.srflx}, relay={self.relay})"
        )


def summarize_candidates(candidates: Iterable[IceCandidate]) -> CandidateSummary:
    """Count candidates by type.

    Args:
        candidates: Candidates to summarize.

    Returns:
        CandidateSummary with per-type counts.
    """
    types = [c.type for c in candidates]
    return CandidateSummary(
        count=len(types),
        host=types.count("host"),
        srflx=types.count("srflx"),
        relay=types.count("relay"),
    )


class CandidateAggregator:
    """Collects discovered local candidates until gathering completes."""

    def __init__(self) -> None:
        self._candidates: list[IceCandidate] = []
        self._complete = False
        self._gate: Gate[tuple[IceCandidate, ...]] = Gate("local ICE candidates")

    @property
    def gate(self) -> Gate[tuple[IceCandidate, ...]]:
        """Gate resolved with the frozen candidate tuple."""
        return self._gate

    @property
    def candidates(self) -> tuple[IceCandidate, ...]:
        """Candidates discovered so far, in discovery order."""
        return tuple(self._candidates)

    @property
    def is_complete(self) -> bool:
        return self._complete

    def add(self, candidate: IceCandidate) -> None:
        """Record a discovered candidate.

        Duplicates are kept. Candidates arriving after completion are dropped.
        """
        if self._complete:
            logger.warning(f"Ignoring candidate after gathering completed: {candidate.candidate}")
            return
        logger.debug(f"Local candidate: {candidate.candidate}")
        self._candidates.append(candidate)

    def complete(self) -> None:
        """Mark gathering complete and release the gate.

        Resolves with every candidate if there is at least one, otherwise
        rejects with NoCandidatesFoundError. Only the first call counts.
        """
        if self._complete:
            return
        self._complete = True

        if self._candidates:
            frozen = tuple(self._candidates)
            logger.info(f"ICE gathering complete: {summarize_candidates(frozen)}")
            self._gate.resolve(frozen)
        else:
            logger.warning("ICE gathering complete with no candidates")
            self._gate.reject(NoCandidatesFoundError("No ICE candidates found"))


def candidates_from_sdp(sdp: str) -> list[IceCandidate]:
    """Extract ICE candidates from SDP text.

    Each candidate carries the mid and m-line index of its media section.

    Args:
        sdp: The SDP string.

    Returns:
        Candidates in the order they appear.
    """
    candidates: list[IceCandidate] = []
    section: list[str] = []
    mline_index = -1
    mid: str | None = None

    def flush() -> None:
        for line in section:
            candidates.append(
                IceCandidate(candidate=line, sdp_mid=mid, sdp_mline_index=mline_index)
            )
        section.clear()

    for line in sdp.splitlines():
        line = line.strip()
        if line.startswith("m="):
            flush()
            mline_index += 1
            mid = None
        elif line.startswith("a=mid:"):
            mid = line[len("a=mid:"):]
        elif line.startswith("a=candidate:") and mline_index >= 0:
            section.append(line[len("a="):])
    flush()
    return candidates
