"""Tests for local candidate aggregation."""

import pytest

from peerlink.candidates import (
    CandidateAggregator,
    candidates_from_sdp,
    summarize_candidates,
)
from peerlink.errors import NoCandidatesFoundError
from peerlink.gate import GateState
from peerlink.messages import IceCandidate


def make_candidate(n: int, typ: str = "host") -> IceCandidate:
    return IceCandidate(candidate=f"candidate:{n} 1 udp 100 10.0.0.{n} 5000{n} typ {typ}")


class TestCandidateAggregator:
    """Test CandidateAggregator class."""

    async def test_resolves_with_candidates_in_discovery_order(self):
        aggregator = CandidateAggregator()
        discovered = [make_candidate(3), make_candidate(1), make_candidate(2)]
        for candidate in discovered:
            aggregator.add(candidate)

        aggregator.complete()

        assert await aggregator.gate.wait() == tuple(discovered)

    async def test_duplicates_are_kept(self):
        aggregator = CandidateAggregator()
        aggregator.add(make_candidate(1))
        aggregator.add(make_candidate(1))
        aggregator.complete()

        assert len(await aggregator.gate.wait()) == 2

    async def test_rejects_when_nothing_gathered(self):
        aggregator = CandidateAggregator()
        aggregator.complete()

        assert aggregator.gate.state is GateState.REJECTED
        with pytest.raises(NoCandidatesFoundError):
            await aggregator.gate.wait()

    async def test_frozen_after_completion(self):
        aggregator = CandidateAggregator()
        aggregator.add(make_candidate(1))
        aggregator.complete()

        aggregator.add(make_candidate(2))
        aggregator.complete()

        assert aggregator.is_complete
        assert aggregator.candidates == (make_candidate(1),)
        assert await aggregator.gate.wait() == (make_candidate(1),)

    def test_not_complete_until_told(self):
        aggregator = CandidateAggregator()
        aggregator.add(make_candidate(1))
        assert not aggregator.is_complete
        assert not aggregator.gate.done()


class TestSummarizeCandidates:
    """Test summarize_candidates function."""

    def test_counts_by_type(self):
        summary = summarize_candidates(
            [make_candidate(1), make_candidate(2, "srflx"), make_candidate(3, "relay"), make_candidate(4)]
        )
        assert summary.count == 4
        assert summary.host == 2
        assert summary.srflx == 1
        assert summary.relay == 1
        assert "4 candidates" in str(summary)

    def test_empty(self):
        summary = summarize_candidates([])
        assert summary.count == 0
        assert summary.host == 0


# Note: SDP lines must start at column 0, no leading whitespace
SDP_WITH_TWO_SECTIONS = (
    "v=0\r\n"
    "o=- 123456 2 IN IP4 127.0.0.1\r\n"
    "s=-\r\n"
    "t=0 0\r\n"
    "a=group:BUNDLE 0 1\r\n"
    "m=audio 9 UDP/TLS/RTP/SAVPF 0\r\n"
    "a=candidate:1 1 udp 2130706431 192.168.1.100 50000 typ host\r\n"
    "a=mid:0\r\n"
    "m=application 9 UDP/DTLS/SCTP webrtc-datachannel\r\n"
    "a=mid:1\r\n"
    "a=candidate:2 1 udp 1694498815 203.0.113.50 50000 typ srflx raddr 192.168.1.100 rport 50000\r\n"
    "a=end-of-candidates\r\n"
)


class TestCandidatesFromSdp:
    """Test candidates_from_sdp function."""

    def test_extracts_candidates_with_media_section(self):
        candidates = candidates_from_sdp(SDP_WITH_TWO_SECTIONS)

        assert candidates == [
            IceCandidate(
                candidate="candidate:1 1 udp 2130706431 192.168.1.100 50000 typ host",
                sdp_mid="0",
                sdp_mline_index=0,
            ),
            IceCandidate(
                candidate="candidate:2 1 udp 1694498815 203.0.113.50 50000 typ srflx raddr 192.168.1.100 rport 50000",
                sdp_mid="1",
                sdp_mline_index=1,
            ),
        ]

    def test_no_candidates(self):
        assert candidates_from_sdp("v=0\r\nm=application 9 UDP/DTLS/SCTP webrtc-datachannel\r\n") == []
