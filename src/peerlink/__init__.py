"""peerlink - WebRTC sessions without a signaling server."""

__version__ = "0.1.0"

from peerlink.codec import decode_answer, decode_offer, encode_answer, encode_offer
from peerlink.errors import (
    ConnectionFailedError,
    InvariantViolation,
    NoCandidatesFoundError,
    PeerlinkError,
    ValidationError,
)
from peerlink.gate import Gate
from peerlink.messages import IceCandidate, NegotiateAnswer, NegotiateOffer, SessionDescription
from peerlink.peer import Peer

__all__ = [
    "ConnectionFailedError",
    "Gate",
    "IceCandidate",
    "InvariantViolation",
    "NegotiateAnswer",
    "NegotiateOffer",
    "NoCandidatesFoundError",
    "Peer",
    "PeerlinkError",
    "SessionDescription",
    "ValidationError",
    "__version__",
    "decode_answer",
    "decode_offer",
    "encode_answer",
    "encode_offer",
]
