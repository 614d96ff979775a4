"""aiortc RTCPeerConnection 기반 PeerLink 구현

aiortc는 candidate를 trickle하지 않고 setLocalDescription 시점에 ICE gathering을
마친 뒤 SDP에 포함시킨다. 따라서 on_local_candidate는 호출되지 않는다.
"""

import logging
from typing import Any

from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from aiortc.exceptions import InternalError, InvalidAccessError, InvalidStateError

from meshcall.client.interfaces import (
    IceCandidate,
    PeerLinkConfig,
    PeerLinkEvents,
    SessionDescription,
    TransportState,
)
from meshcall.core.exceptions import NegotiationError
from meshcall.utils.ice_parser import ICECandidateParser

logger = logging.getLogger(__name__)

_NEGOTIATION_ERRORS = (ValueError, InternalError, InvalidAccessError, InvalidStateError)


def build_rtc_configuration(ice_servers: list[dict[str, Any]]) -> RTCConfiguration:
    """ICE 서버 dict 목록을 RTCConfiguration으로 변환"""
    servers = []
    for server in ice_servers:
        urls = server["urls"]
        if isinstance(urls, str):
            urls = [urls]
        servers.append(
            RTCIceServer(
                urls=urls,
                username=server.get("username"),
                credential=server.get("credential"),
            )
        )
    return RTCConfiguration(iceServers=servers)


def _to_description(description: SessionDescription) -> RTCSessionDescription:
    sdp = description.get("sdp") if isinstance(description, dict) else None
    sdp_type = description.get("type") if isinstance(description, dict) else None
    if not sdp or not sdp_type:
        raise NegotiationError(f"Invalid SDP format: sdp={bool(sdp)}, type={sdp_type}")
    return RTCSessionDescription(sdp=sdp, type=sdp_type)


class AiortcPeerLink:
    """RTCPeerConnection 래퍼"""

    def __init__(self, config: PeerLinkConfig, events: PeerLinkEvents):
        self.pc = RTCPeerConnection(configuration=build_rtc_configuration(config.ice_servers))
        self._events = events
        self._closed = False

        @self.pc.on("track")
        def on_track(track):
            logger.info(f"Remote {track.kind} track received")
            self._events.on_remote_track(track)

        @self.pc.on("connectionstatechange")
        def on_connection_state_change():
            logger.info(f"Connection state: {self.pc.connectionState}")
            self._events.on_connection_state_change(TransportState(self.pc.connectionState))

    def add_local_track(self, track: Any) -> None:
        self.pc.addTrack(track)

    async def create_offer(self) -> SessionDescription:
        try:
            offer = await self.pc.createOffer()
        except _NEGOTIATION_ERRORS as e:
            raise NegotiationError(f"createOffer failed: {e}") from e
        return {"type": offer.type, "sdp": offer.sdp}

    async def create_answer(self) -> SessionDescription:
        try:
            answer = await self.pc.createAnswer()
        except _NEGOTIATION_ERRORS as e:
            raise NegotiationError(f"createAnswer failed: {e}") from e
        return {"type": answer.type, "sdp": answer.sdp}

    async def set_local_description(self, description: SessionDescription) -> SessionDescription:
        """로컬 description 적용 (ICE gathering 완료까지 대기)

        Returns:
            gathering된 candidate가 포함된 description
        """
        try:
            await self.pc.setLocalDescription(_to_description(description))
        except _NEGOTIATION_ERRORS as e:
            raise NegotiationError(f"setLocalDescription failed: {e}") from e
        local = self.pc.localDescription
        return {"type": local.type, "sdp": local.sdp}

    async def set_remote_description(self, description: SessionDescription) -> None:
        try:
            await self.pc.setRemoteDescription(_to_description(description))
        except _NEGOTIATION_ERRORS as e:
            raise NegotiationError(f"setRemoteDescription failed: {e}") from e

    async def add_remote_candidate(self, candidate: IceCandidate) -> None:
        # 빈 candidate 문자열은 무시 (end-of-candidates)
        if ICECandidateParser.is_end_of_candidates(candidate):
            return

        parsed = ICECandidateParser.parse(candidate)
        if parsed is None:
            raise NegotiationError(f"Malformed ICE candidate: {str(candidate.get('candidate'))[:100]}")
        try:
            await self.pc.addIceCandidate(parsed)
        except _NEGOTIATION_ERRORS as e:
            raise NegotiationError(f"addIceCandidate failed: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.pc.close()


class AiortcPeerLinkFactory:
    def create(self, config: PeerLinkConfig, events: PeerLinkEvents) -> AiortcPeerLink:
        return AiortcPeerLink(config, events)
