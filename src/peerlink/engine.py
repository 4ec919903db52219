"""Transport engine backed by aiortc."""

import logging
from typing import Any, Callable

from aiortc import (
    RTCConfiguration,
    RTCDataChannel,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import candidate_from_sdp
from pyee.asyncio import AsyncIOEventEmitter

from peerlink.candidates import candidates_from_sdp
from peerlink.messages import DescriptionKind, IceCandidate, SessionDescription

logger = logging.getLogger(__name__)


class AiortcEngine(AsyncIOEventEmitter):
    """Adapts aiortc.RTCPeerConnection to the TransportEngine protocol.

    aiortc gathers every local candidate inside setLocalDescription and
    emits neither per-candidate nor negotiation-needed events, so this
    adapter synthesizes them:

    - icecandidate for each candidate in the local description, then None,
      then icegatheringstatechange("complete"), right after
      set_local_description returns;
    - negotiationneeded the first time a channel or track is added before
      any local description exists.
    """

    def __init__(
        self,
        stun_servers: list[str] | None = None,
        pc_factory: Callable[[RTCConfiguration], RTCPeerConnection] | None = None,
    ):
        """Initialize engine.

        Args:
            stun_servers: STUN server URLs. Empty or None means host candidates only.
            pc_factory: Factory to create RTCPeerConnection (for testing).
        """
        super().__init__()
        if stun_servers:
            config = RTCConfiguration(iceServers=[RTCIceServer(urls=stun_servers)])
        else:
            config = RTCConfiguration(iceServers=[])
        self._pc = (pc_factory or self._default_pc_factory)(config)
        self._negotiation_requested = False
        self._gathering_reported = False

        @self._pc.on("connectionstatechange")
        def on_connection_state_change():
            self.emit("connectionstatechange", self._pc.connectionState)

        @self._pc.on("iceconnectionstatechange")
        def on_ice_connection_state_change():
            logger.debug(f"ICE connection state: {self._pc.iceConnectionState}")

        @self._pc.on("datachannel")
        def on_datachannel(channel: RTCDataChannel):
            self.emit("datachannel", channel)

    def _default_pc_factory(self, config: RTCConfiguration) -> RTCPeerConnection:
        """Create default RTCPeerConnection."""
        return RTCPeerConnection(configuration=config)

    @property
    def pc(self) -> RTCPeerConnection:
        """The wrapped RTCPeerConnection."""
        return self._pc

    def _request_negotiation(self) -> None:
        if self._negotiation_requested or self._pc.localDescription is not None:
            return
        self._negotiation_requested = True
        self.emit("negotiationneeded")

    def _report_local_candidates(self) -> None:
        if self._gathering_reported:
            return
        self._gathering_reported = True
        for candidate in candidates_from_sdp(self._pc.localDescription.sdp):
            self.emit("icecandidate", candidate)
        self.emit("icecandidate", None)
        self.emit("icegatheringstatechange", "complete")

    @staticmethod
    def _to_description(description: RTCSessionDescription) -> SessionDescription:
        return SessionDescription(kind=DescriptionKind(description.type), sdp=description.sdp)

    @staticmethod
    def _from_description(description: SessionDescription) -> RTCSessionDescription:
        return RTCSessionDescription(sdp=description.sdp, type=description.kind.value)

    async def create_offer(self) -> SessionDescription:
        return self._to_description(await self._pc.createOffer())

    async def create_answer(self) -> SessionDescription:
        return self._to_description(await self._pc.createAnswer())

    async def set_local_description(self, description: SessionDescription) -> None:
        """Apply the local description and report the gathered candidates."""
        await self._pc.setLocalDescription(self._from_description(description))
        self._report_local_candidates()

    async def set_remote_description(self, description: SessionDescription) -> None:
        await self._pc.setRemoteDescription(self._from_description(description))

    async def add_ice_candidate(self, candidate: IceCandidate | None) -> None:
        """Apply a remote candidate; None signals end of candidates."""
        if candidate is None:
            await self._pc.addIceCandidate(None)
            return

        line = candidate.candidate
        if line.startswith("candidate:"):
            line = line[len("candidate:"):]
        if not line:
            # Browsers send an empty candidate as their own end marker
            return
        rtc_candidate = candidate_from_sdp(line)
        rtc_candidate.sdpMid = candidate.sdp_mid
        rtc_candidate.sdpMLineIndex = candidate.sdp_mline_index
        await self._pc.addIceCandidate(rtc_candidate)

    def create_data_channel(self, label: str) -> RTCDataChannel:
        channel = self._pc.createDataChannel(label, ordered=True)
        self._request_negotiation()
        return channel

    def add_track(self, track: Any) -> None:
        self._pc.addTrack(track)
        self._request_negotiation()

    async def close(self) -> None:
        await self._pc.close()
