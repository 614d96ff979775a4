"""pytest 설정 및 공유 fixture

테스트 인프라:
- 테스트 설정 / FastAPI 앱 / TestClient / httpx AsyncClient
- 엔드포인트 측 fake (PeerLink, SignalingChannel, MediaSource, RenderSurface)
- 서버 측 fake WebSocket
"""

import asyncio
from collections.abc import AsyncGenerator, Generator
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from meshcall.client.interfaces import PeerLinkConfig, PeerLinkEvents, TransportState
from meshcall.client.media import LocalMedia
from meshcall.client.reconnect import ReconnectPolicy
from meshcall.core.config import Settings
from meshcall.core.exceptions import MediaAcquisitionError, NegotiationError
from meshcall.main import create_app
from meshcall.schemas.signaling import WireModel
from meshcall.services.room_store import InMemoryRoomStore
from meshcall.services.signaling_relay import SignalingRelay
from meshcall.services.signaling_service import ConnectionManager


# ===== 테스트 설정 =====


@pytest.fixture
def test_settings() -> Settings:
    """테스트용 설정 (.env 무시)"""
    return Settings(
        _env_file=None,
        environment="test",
        debug=True,
        max_participants=0,
        reconnect_base_delay=0.01,
        reconnect_max_delay=0.05,
    )


# ===== FastAPI Fixture =====


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """동기 TestClient (lifespan 실행)"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """비동기 HTTP 클라이언트"""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac


# ===== 서버 측 Fixture =====


class FakeWebSocket:
    """send_json 호출을 기록하는 WebSocket"""

    def __init__(self, fail_on_send: bool = False):
        self.accept = AsyncMock()
        self.close = AsyncMock()
        self.sent: list[dict] = []
        self.fail_on_send = fail_on_send

    async def send_json(self, data: dict) -> None:
        if self.fail_on_send:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for m in self.sent if m["type"] == msg_type]


@pytest.fixture
def store() -> InMemoryRoomStore:
    return InMemoryRoomStore()


@pytest.fixture
def relay(store: InMemoryRoomStore) -> SignalingRelay:
    return SignalingRelay(store=store, connections=ConnectionManager())


@pytest.fixture
def make_websocket():
    """FakeWebSocket 생성 함수"""
    return FakeWebSocket


# ===== 엔드포인트 측 Fixture =====


class FakePeerLink:
    """호출을 기록하는 PeerLink"""

    def __init__(self, config: PeerLinkConfig, events: PeerLinkEvents):
        self.config = config
        self.events = events
        self.local_tracks: list[Any] = []
        self.local_descriptions: list[dict] = []
        self.remote_descriptions: list[dict] = []
        self.candidates: list[dict] = []
        self.close_count = 0
        self.fail_remote_description = False
        self.fail_create_offer = False

    def add_local_track(self, track: Any) -> None:
        self.local_tracks.append(track)

    async def create_offer(self) -> dict:
        if self.fail_create_offer:
            raise NegotiationError("createOffer failed")
        return {"type": "offer", "sdp": "v=0 offer"}

    async def create_answer(self) -> dict:
        return {"type": "answer", "sdp": "v=0 answer"}

    async def set_local_description(self, description: dict) -> dict:
        self.local_descriptions.append(description)
        return description

    async def set_remote_description(self, description: dict) -> None:
        if self.fail_remote_description:
            raise NegotiationError("setRemoteDescription failed")
        self.remote_descriptions.append(description)

    async def add_remote_candidate(self, candidate: dict) -> None:
        self.candidates.append(candidate)

    async def close(self) -> None:
        self.close_count += 1

    # 테스트 헬퍼
    def emit_state(self, state: TransportState) -> None:
        self.events.on_connection_state_change(state)

    def emit_track(self, track: Any) -> None:
        self.events.on_remote_track(track)

    def emit_candidate(self, candidate: dict) -> None:
        self.events.on_local_candidate(candidate)


class FakePeerLinkFactory:
    def __init__(self):
        self.links: list[FakePeerLink] = []

    def create(self, config: PeerLinkConfig, events: PeerLinkEvents) -> FakePeerLink:
        link = FakePeerLink(config, events)
        self.links.append(link)
        return link


class FakeSignalingChannel:
    """전송된 메시지를 기록하는 SignalingChannel"""

    def __init__(self):
        self.sent: list[WireModel] = []
        self.closed = False

    async def send(self, message: WireModel) -> None:
        if self.closed:
            raise ConnectionError("closed")
        self.sent.append(message)

    def of_type(self, msg_type: str) -> list[WireModel]:
        return [m for m in self.sent if m.type == msg_type]


class FakeTrack:
    def __init__(self, kind: str):
        self.kind = kind
        self.enabled = True
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeMediaSource:
    def __init__(self, error: MediaAcquisitionError | None = None):
        self.error = error
        self.media: LocalMedia | None = None

    async def acquire(self) -> LocalMedia:
        if self.error:
            raise self.error
        self.media = LocalMedia(video_track=FakeTrack("video"), audio_track=FakeTrack("audio"))
        return self.media


class FakeSurface:
    def __init__(self, remote_id: str):
        self.remote_id = remote_id
        self.tracks: list[Any] = []
        self.detached = False

    def attach(self, track: Any) -> None:
        self.tracks.append(track)

    async def detach(self) -> None:
        self.detached = True


@pytest.fixture
def link_factory() -> FakePeerLinkFactory:
    return FakePeerLinkFactory()


@pytest.fixture
def signaling() -> FakeSignalingChannel:
    return FakeSignalingChannel()


@pytest.fixture
def media_source() -> FakeMediaSource:
    return FakeMediaSource()


@pytest.fixture
def fast_policy() -> ReconnectPolicy:
    """테스트용 짧은 재연결 정책 (1회, 10ms)"""
    return ReconnectPolicy(base_delay=0.01, backoff_factor=2.0, max_attempts=1, max_delay=0.05)


@pytest.fixture
def fake_track():
    return FakeTrack


@pytest.fixture
def fake_media_source():
    return FakeMediaSource


@pytest.fixture
def settle():
    """spawn된 이벤트 task가 처리될 때까지 event loop 양보"""

    async def _settle(rounds: int = 20) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle


@pytest.fixture
def fake_surface():
    return FakeSurface
