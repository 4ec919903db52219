"""Tests for the aiortc transport engine adapter."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from aiortc import RTCIceCandidate

from peerlink.engine import AiortcEngine
from peerlink.messages import DescriptionKind, IceCandidate, SessionDescription
from peerlink.peer import Peer
from peerlink.protocols import ConnectionState
from peerlink.signaling import LoopbackSignaling

LOCAL_SDP = (
    "v=0\r\n"
    "o=- 123456 2 IN IP4 127.0.0.1\r\n"
    "s=-\r\n"
    "t=0 0\r\n"
    "m=application 9 UDP/DTLS/SCTP webrtc-datachannel\r\n"
    "a=mid:0\r\n"
    "a=candidate:1 1 udp 2130706431 192.168.1.100 50000 typ host\r\n"
    "a=candidate:2 1 udp 1694498815 203.0.113.50 50000 typ srflx raddr 192.168.1.100 rport 50000\r\n"
    "a=end-of-candidates\r\n"
)


@pytest.fixture
def mock_pc():
    """Mock RTCPeerConnection capturing its event handlers."""
    pc = Mock()
    pc.handlers = {}

    def mock_on(event):
        def decorator(fn):
            pc.handlers[event] = fn
            return fn

        return decorator

    pc.on = mock_on
    pc.connectionState = "new"
    pc.localDescription = None

    async def set_local(description):
        pc.localDescription = Mock(sdp=LOCAL_SDP, type=description.type)

    pc.createOffer = AsyncMock(return_value=Mock(type="offer", sdp="v=0\r\n"))
    pc.createAnswer = AsyncMock(return_value=Mock(type="answer", sdp="v=0\r\n"))
    pc.setLocalDescription = AsyncMock(side_effect=set_local)
    pc.setRemoteDescription = AsyncMock()
    pc.addIceCandidate = AsyncMock()
    pc.createDataChannel = Mock(return_value=Mock(label="main"))
    pc.addTrack = Mock()
    pc.close = AsyncMock()
    return pc


@pytest.fixture
def engine(mock_pc):
    return AiortcEngine(stun_servers=[], pc_factory=lambda config: mock_pc)


class TestAiortcEngine:
    """Test AiortcEngine with a mocked RTCPeerConnection."""

    def test_passes_stun_servers(self, mock_pc):
        configs = []

        def factory(config):
            configs.append(config)
            return mock_pc

        AiortcEngine(stun_servers=["stun:stun.example.org:3478"], pc_factory=factory)

        assert configs[0].iceServers[0].urls == ["stun:stun.example.org:3478"]

    def test_no_stun_servers(self, mock_pc):
        configs = []
        AiortcEngine(stun_servers=None, pc_factory=lambda c: configs.append(c) or mock_pc)
        assert configs[0].iceServers == []

    async def test_create_offer_converts_description(self, engine):
        offer = await engine.create_offer()
        assert offer == SessionDescription(kind=DescriptionKind.OFFER, sdp="v=0\r\n")

    async def test_set_local_description_reports_candidates(self, engine, mock_pc):
        events = []
        engine.on("icecandidate", lambda c: events.append(("candidate", c)))
        engine.on("icegatheringstatechange", lambda s: events.append(("gathering", s)))

        await engine.set_local_description(SessionDescription(kind=DescriptionKind.OFFER, sdp="v=0\r\n"))

        passed = mock_pc.setLocalDescription.await_args.args[0]
        assert passed.type == "offer"
        assert [e[0] for e in events] == ["candidate", "candidate", "candidate", "gathering"]
        first = events[0][1]
        assert first.candidate.startswith("candidate:1 1 udp")
        assert first.sdp_mid == "0"
        assert first.sdp_mline_index == 0
        assert events[2] == ("candidate", None)
        assert events[3] == ("gathering", "complete")

    async def test_add_ice_candidate_converts_to_aiortc(self, engine, mock_pc):
        await engine.add_ice_candidate(
            IceCandidate(
                candidate="candidate:1 1 udp 2130706431 192.168.1.100 50000 typ host",
                sdp_mid="0",
                sdp_mline_index=0,
            )
        )

        rtc_candidate = mock_pc.addIceCandidate.await_args.args[0]
        assert isinstance(rtc_candidate, RTCIceCandidate)
        assert rtc_candidate.ip == "192.168.1.100"
        assert rtc_candidate.port == 50000
        assert rtc_candidate.type == "host"
        assert rtc_candidate.sdpMid == "0"
        assert rtc_candidate.sdpMLineIndex == 0

    async def test_end_of_candidates(self, engine, mock_pc):
        await engine.add_ice_candidate(None)
        mock_pc.addIceCandidate.assert_awaited_once_with(None)

    async def test_empty_browser_candidate_is_skipped(self, engine, mock_pc):
        await engine.add_ice_candidate(IceCandidate(candidate="", sdp_mid="0"))
        mock_pc.addIceCandidate.assert_not_awaited()

    def test_first_channel_raises_negotiation_needed(self, engine):
        needed = []
        engine.on("negotiationneeded", lambda: needed.append(True))

        engine.create_data_channel("main")
        engine.add_track(Mock())

        assert needed == [True]

    async def test_no_negotiation_needed_after_local_description(self, engine):
        needed = []
        engine.on("negotiationneeded", lambda: needed.append(True))
        await engine.set_local_description(SessionDescription(kind=DescriptionKind.ANSWER, sdp="v=0\r\n"))

        engine.add_track(Mock())

        assert needed == []

    def test_forwards_connection_state(self, engine, mock_pc):
        states = []
        engine.on("connectionstatechange", states.append)

        mock_pc.connectionState = "connected"
        mock_pc.handlers["connectionstatechange"]()

        assert states == ["connected"]

    def test_forwards_datachannel(self, engine, mock_pc):
        channels = []
        engine.on("datachannel", channels.append)
        channel = Mock()

        mock_pc.handlers["datachannel"](channel)

        assert channels == [channel]

    async def test_close(self, engine, mock_pc):
        await engine.close()
        mock_pc.close.assert_awaited_once()


@pytest.mark.integration
class TestAiortcEngineIntegration:
    """Integration tests with real aiortc peers on the loopback interface."""

    async def test_two_peers_connect_locally(self):
        signaling = LoopbackSignaling()
        received = asyncio.Queue()

        async with Peer(signaling.offerer_handler, engine=AiortcEngine(stun_servers=[])) as offerer, Peer(
            signaling.answerer_handler, engine=AiortcEngine(stun_servers=[])
        ) as answerer:
            signaling.bind(answerer)
            answerer.on_message(received.put_nowait)

            await offerer.start()
            await asyncio.wait_for(
                asyncio.gather(offerer.connected(), answerer.connected()), timeout=30
            )

            assert offerer.state == ConnectionState.CONNECTED
            assert answerer.state == ConnectionState.CONNECTED
            assert len(offerer.local_candidates) > 0

            # The channel opens shortly after DTLS connects
            for _ in range(50):
                if offerer.channel.readyState == "open":
                    break
                await asyncio.sleep(0.1)
            offerer.send("hello from offerer")

            assert await asyncio.wait_for(received.get(), timeout=5) == "hello from offerer"
