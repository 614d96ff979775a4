"""엔드포인트 외부 협력자 인터페이스

미디어 캡처, 렌더링, 피어 링크(전송 계층), 시그널링 채널은 모두
Protocol로만 사용한다. aiortc / websockets 바인딩은 별도 모듈에 있다.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from meshcall.client.media import LocalMedia
from meshcall.schemas.signaling import WireModel

# {"type": "offer" | "answer", "sdp": "..."}
SessionDescription = dict[str, Any]
# {"candidate": "candidate:...", "sdpMid": "0", "sdpMLineIndex": 0}
IceCandidate = dict[str, Any]


class TransportState(str, Enum):
    """피어 링크 전송 계층 상태 (RTCPeerConnection.connectionState)"""
    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class PeerLinkEvents:
    """피어 링크가 호출하는 콜백 묶음"""
    on_remote_track: Callable[[Any], None]
    on_local_candidate: Callable[[IceCandidate], None]
    on_connection_state_change: Callable[[TransportState], None]


@dataclass
class PeerLinkConfig:
    """피어 링크 생성 설정"""
    ice_servers: list[dict[str, Any]] = field(default_factory=list)


class PeerLink(Protocol):
    """두 엔드포인트 사이의 opaque 전송 링크

    description/candidate 적용 실패는 NegotiationError로 알린다.
    """

    def add_local_track(self, track: Any) -> None:
        ...

    async def create_offer(self) -> SessionDescription:
        ...

    async def create_answer(self) -> SessionDescription:
        ...

    async def set_local_description(self, description: SessionDescription) -> SessionDescription:
        """로컬 description 적용 후 실제로 적용된 description 반환"""
        ...

    async def set_remote_description(self, description: SessionDescription) -> None:
        ...

    async def add_remote_candidate(self, candidate: IceCandidate) -> None:
        ...

    async def close(self) -> None:
        ...


class PeerLinkFactory(Protocol):
    def create(self, config: PeerLinkConfig, events: PeerLinkEvents) -> PeerLink:
        ...


class MediaSource(Protocol):
    """카메라/마이크 획득

    실패 시 MediaAcquisitionError를 발생시킨다.
    """

    async def acquire(self) -> LocalMedia:
        ...


class RenderSurface(Protocol):
    """원격 트랙 렌더링 대상"""

    def attach(self, track: Any) -> None:
        ...

    async def detach(self) -> None:
        ...


class SignalingChannel(Protocol):
    """시그널링 서버로 메시지 전송

    연결이 끊긴 경우 ConnectionError를 발생시킨다.
    """

    async def send(self, message: WireModel) -> None:
        ...
