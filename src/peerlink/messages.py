"""Negotiation data types.

This module provides:
- SessionDescription: an offer or answer produced by the transport engine
- IceCandidate: one local or remote network path
- NegotiateOffer / NegotiateAnswer: the two signaling envelopes

The dict forms mirror the browser RTCSessionDescriptionInit and
RTCIceCandidateInit JSON shapes, so envelopes interoperate with web peers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

__all__ = [
    "DescriptionKind",
    "IceCandidate",
    "NegotiateAnswer",
    "NegotiateOffer",
    "SessionDescription",
]

NEGOTIATE_OFFER = "negotiateOffer"
NEGOTIATE_ANSWER = "negotiateAnswer"


class DescriptionKind(str, Enum):
    """Kind of session description."""

    OFFER = "offer"
    ANSWER = "answer"


@dataclass(frozen=True)
class SessionDescription:
    """Session description.

    Attributes:
        kind: Offer or answer.
        sdp: Raw SDP text (starts with "v=0").
    """

    kind: DescriptionKind
    sdp: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dict."""
        return {"type": self.kind.value, "sdp": self.sdp}

    @classmethod
    def from_dict(cls, d: dict) -> "SessionDescription":
        """Create from a validated wire dict."""
        return cls(kind=DescriptionKind(d["type"]), sdp=d["sdp"])


@dataclass(frozen=True)
class IceCandidate:
    """ICE candidate.

    Attributes:
        candidate: The "candidate:..." attribute line.
        sdp_mid: Media stream id the candidate belongs to.
        sdp_mline_index: Index of the m-line the candidate belongs to.
        username_fragment: ICE ufrag, when the engine reports it.
    """

    candidate: str
    sdp_mid: str | None = None
    sdp_mline_index: int | None = None
    username_fragment: str | None = None

    @property
    def type(self) -> str | None:
        """Candidate type (host, srflx, prflx, relay), parsed from the line."""
        parts = self.candidate.split()
        if "typ" in parts:
            index = parts.index("typ")
            if index + 1 < len(parts):
                return parts[index + 1]
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dict."""
        return {
            "candidate": self.candidate,
            "sdpMid": self.sdp_mid,
            "sdpMLineIndex": self.sdp_mline_index,
            "usernameFragment": self.username_fragment,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "IceCandidate":
        """Create from a validated wire dict."""
        return cls(
            candidate=d["candidate"],
            sdp_mid=d.get("sdpMid"),
            sdp_mline_index=d.get("sdpMLineIndex"),
            username_fragment=d.get("usernameFragment"),
        )


@dataclass(frozen=True)
class NegotiateOffer:
    """Offer envelope sent by the offerer."""

    offer: SessionDescription
    candidates: tuple[IceCandidate, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": NEGOTIATE_OFFER,
            "offer": self.offer.to_dict(),
            "candidates": [c.to_dict() for c in self.candidates],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "NegotiateOffer":
        return cls(
            offer=SessionDescription.from_dict(d["offer"]),
            candidates=tuple(IceCandidate.from_dict(c) for c in d["candidates"]),
        )


@dataclass(frozen=True)
class NegotiateAnswer:
    """Answer envelope sent back by the answerer."""

    answer: SessionDescription
    candidates: tuple[IceCandidate, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": NEGOTIATE_ANSWER,
            "answer": self.answer.to_dict(),
            "candidates": [c.to_dict() for c in self.candidates],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "NegotiateAnswer":
        return cls(
            answer=SessionDescription.from_dict(d["answer"]),
            candidates=tuple(IceCandidate.from_dict(c) for c in d["candidates"]),
        )
