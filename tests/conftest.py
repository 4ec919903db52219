"""Pytest configuration and shared fixtures."""

import pytest

from peerlink.messages import IceCandidate
from tests.fakes import FakeEngine


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Reset logging state before each test."""
    from peerlink.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def host_candidates():
    """Two host candidates on the first m-line."""
    return [
        IceCandidate(
            candidate="candidate:1 1 udp 2130706431 192.168.1.100 50000 typ host",
            sdp_mid="0",
            sdp_mline_index=0,
        ),
        IceCandidate(
            candidate="candidate:2 1 udp 2130706431 10.0.0.5 50001 typ host",
            sdp_mid="0",
            sdp_mline_index=0,
        ),
    ]


@pytest.fixture
def engine(host_candidates):
    """Fake engine that gathers two host candidates."""
    return FakeEngine(candidates=host_candidates)
