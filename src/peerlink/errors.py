"""Exceptions raised by peerlink."""


class PeerlinkError(Exception):
    """Base exception for all peerlink errors."""

    pass


class ValidationError(PeerlinkError):
    """Negotiation envelope is malformed or has the wrong shape."""

    pass


class NoCandidatesFoundError(PeerlinkError):
    """ICE gathering completed without discovering any candidate."""

    pass


class ConnectionFailedError(PeerlinkError):
    """Transport engine reported that connectivity failed."""

    pass


class InvariantViolation(PeerlinkError, AssertionError):
    """Internal consistency check failed. Not recoverable."""

    pass


class NegotiationTimeoutError(PeerlinkError, TimeoutError):
    """A gate or handler call did not finish within its configured timeout."""

    pass


class HandshakeInProgressError(PeerlinkError):
    """Peer already owns a handshake."""

    pass


class PeerClosedError(PeerlinkError):
    """Peer was closed before the awaited event happened."""

    pass


class ChannelNotOpenError(PeerlinkError):
    """No open data channel to send on."""

    pass
