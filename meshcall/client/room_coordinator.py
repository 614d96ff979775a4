"""Room Coordinator - 룸 멤버십 이벤트에 따라 피어 세션 생성/삭제"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from meshcall.client.interfaces import (
    MediaSource,
    PeerLinkConfig,
    PeerLinkFactory,
    RenderSurface,
    SignalingChannel,
)
from meshcall.client.media import LocalMedia
from meshcall.client.peer_session import PeerSessionManager
from meshcall.client.reconnect import ReconnectPolicy
from meshcall.client.state_machine import NegotiationRole
from meshcall.core.exceptions import InvalidStateTransition, MediaAcquisitionError
from meshcall.schemas.signaling import (
    ConnectedMessage,
    ErrorMessage,
    ExistingUsersMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    MediaStateChangeMessage,
    RelayedAnswerMessage,
    RelayedIceCandidateMessage,
    RelayedOfferMessage,
    RoomInfoMessage,
    ServerMessage,
    SignalingMessageType,
    UserJoinedMessage,
    UserLeftMessage,
    UserMediaStateChangedMessage,
    server_message_adapter,
)
from meshcall.utils.room_id import normalize_room_id

logger = logging.getLogger(__name__)

# join 전에도 처리하는 메시지
_IDLE_MESSAGE_TYPES = frozenset({SignalingMessageType.CONNECTED, SignalingMessageType.ERROR})


class CoordinatorState(str, Enum):
    IDLE = "idle"
    JOINING = "joining"
    ACTIVE = "active"
    LEAVING = "leaving"
    LEFT = "left"


@dataclass
class RemoteParticipant:
    """화면에 렌더링 중인 원격 참여자"""
    user_id: str
    user_name: str
    video_enabled: bool = True
    audio_enabled: bool = True
    surface: RenderSurface | None = None
    connected: bool = False


class RoomCoordinator:
    """엔드포인트 측 룸 조정자

    - existing-users: 기존 참여자마다 answerer 세션 생성
    - user-joined: 새 참여자에 대해 offerer 세션 생성
    - user-left / peer-lost: 세션 종료 및 렌더링 제거
    """

    def __init__(
        self,
        signaling: SignalingChannel,
        media_source: MediaSource,
        link_factory: PeerLinkFactory,
        surface_factory: Callable[[str], RenderSurface],
        *,
        link_config: PeerLinkConfig | None = None,
        policy: ReconnectPolicy | None = None,
        on_status: Callable[[str], None] | None = None,
    ):
        self.signaling = signaling
        self.media_source = media_source
        self.link_factory = link_factory
        self.surface_factory = surface_factory
        self.link_config = link_config or PeerLinkConfig()
        self.policy = policy or ReconnectPolicy()
        self.on_status = on_status

        self.state = CoordinatorState.IDLE
        self.local_id: str | None = None
        self.room_id: str | None = None
        self.user_name: str | None = None
        self.local_media: LocalMedia | None = None
        self.sessions: dict[str, PeerSessionManager] = {}
        self.participants: dict[str, RemoteParticipant] = {}
        self.room_info: RoomInfoMessage | None = None
        self.status = "Initializing..."

        self._handlers = {
            SignalingMessageType.CONNECTED: self._on_connected,
            SignalingMessageType.EXISTING_USERS: self._on_existing_users,
            SignalingMessageType.USER_JOINED: self._on_user_joined,
            SignalingMessageType.USER_LEFT: self._on_user_left,
            SignalingMessageType.ROOM_INFO: self._on_room_info,
            SignalingMessageType.OFFER: self._on_offer,
            SignalingMessageType.ANSWER: self._on_answer,
            SignalingMessageType.ICE_CANDIDATE: self._on_ice_candidate,
            SignalingMessageType.USER_MEDIA_STATE_CHANGED: self._on_user_media_state_changed,
            SignalingMessageType.ERROR: self._on_error,
        }

    # ===== 룸 입장/퇴장 =====

    async def join(self, room_id: str, user_name: str) -> None:
        """로컬 미디어 획득 후 join-room 전송

        Raises:
            MediaAcquisitionError: 카메라/마이크 획득 실패 (재시도하지 않음)
            InvalidStateTransition: 이미 입장했거나 퇴장한 경우
        """
        if self.state is not CoordinatorState.IDLE:
            raise InvalidStateTransition(f"Cannot join from {self.state.value}")

        room_id = normalize_room_id(room_id)
        user_name = user_name.strip()
        if not user_name:
            raise ValueError("Display name must not be empty")

        self._set_status("Requesting camera access...")
        try:
            self.local_media = await self.media_source.acquire()
        except MediaAcquisitionError as e:
            logger.error(f"Failed to acquire local media: {e}")
            self._set_status(e.user_message)
            raise
        self._set_status("Camera ready")

        self.room_id = room_id
        self.user_name = user_name
        self.state = CoordinatorState.JOINING
        self._set_status("Connecting to server...")
        await self.signaling.send(JoinRoomMessage(room_id=room_id, user_name=user_name))

    async def leave(self) -> None:
        """모든 세션 종료, leave-room 전송, 로컬 미디어 중지"""
        if self.state in (CoordinatorState.LEAVING, CoordinatorState.LEFT):
            return
        was_joined = self.state in (CoordinatorState.JOINING, CoordinatorState.ACTIVE)
        self.state = CoordinatorState.LEAVING

        sessions = list(self.sessions.values())
        self.sessions.clear()
        await asyncio.gather(*(session.close() for session in sessions))
        for remote_id in list(self.participants):
            await self._remove_participant(remote_id)

        if was_joined:
            try:
                await self.signaling.send(LeaveRoomMessage(room_id=self.room_id))
            except ConnectionError as e:
                logger.warning(f"Could not send leave-room: {e}")

        if self.local_media:
            self.local_media.stop()

        self.state = CoordinatorState.LEFT
        self._set_status("Disconnected")

    # ===== 로컬 미디어 토글 =====

    async def set_video_enabled(self, enabled: bool) -> None:
        if self.local_media is None:
            return
        self.local_media.set_video_enabled(enabled)
        await self._send_media_state()

    async def set_audio_enabled(self, enabled: bool) -> None:
        if self.local_media is None:
            return
        self.local_media.set_audio_enabled(enabled)
        await self._send_media_state()

    async def _send_media_state(self) -> None:
        if self.state is not CoordinatorState.ACTIVE:
            return
        await self.signaling.send(
            MediaStateChangeMessage(
                room_id=self.room_id,
                is_video_enabled=self.local_media.video_enabled,
                is_audio_enabled=self.local_media.audio_enabled,
            )
        )

    # ===== 수신 메시지 처리 =====

    async def handle_message(self, data: dict[str, Any] | ServerMessage) -> None:
        """시그널링 서버 메시지 처리"""
        if isinstance(data, dict):
            try:
                message = server_message_adapter.validate_python(data)
            except ValidationError as e:
                logger.warning(f"Ignoring invalid server message type={data.get('type')}: {e}")
                return
        else:
            message = data

        if self.state in (CoordinatorState.LEAVING, CoordinatorState.LEFT):
            return
        message_type = SignalingMessageType(message.type)
        if self.state is CoordinatorState.IDLE and message_type not in _IDLE_MESSAGE_TYPES:
            logger.debug(f"Ignoring {message.type} before join")
            return

        handler = self._handlers[message_type]
        await handler(message)

    async def _on_connected(self, message: ConnectedMessage) -> None:
        self.local_id = message.user_id
        self._set_status("Connected to server")

    async def _on_existing_users(self, message: ExistingUsersMessage) -> None:
        if self.state is CoordinatorState.IDLE:
            return
        self.state = CoordinatorState.ACTIVE

        users = [u for u in message.users if u.user_id != self.local_id]
        if users:
            plural = "s" if len(users) > 1 else ""
            self._set_status(f"Found {len(users)} user{plural} in room")
        else:
            self._set_status("Waiting for others to join...")

        for user in users:
            if user.user_id not in self.sessions:
                await self._open_session(user.user_id, user.user_name, NegotiationRole.ANSWERER)

    async def _on_user_joined(self, message: UserJoinedMessage) -> None:
        if message.user_id == self.local_id:
            return
        self._set_status(f"{message.user_name} joined the room")

        # 같은 ID로 다시 들어온 경우 이전 세션 정리
        if message.user_id in self.sessions:
            await self._close_session(message.user_id)
        await self._open_session(
            message.user_id,
            message.user_name,
            NegotiationRole.for_arrival(remote_is_newcomer=True),
        )

    async def _on_user_left(self, message: UserLeftMessage) -> None:
        self._set_status(f"{message.user_name} left the room")
        await self._close_session(message.user_id)
        await self._remove_participant(message.user_id)
        if not self.participants:
            self._set_status("Waiting for others to join...")

    async def _on_room_info(self, message: RoomInfoMessage) -> None:
        self.room_info = message
        for user in message.users:
            participant = self.participants.get(user.user_id)
            if participant is not None:
                participant.video_enabled = user.is_video_enabled
                participant.audio_enabled = user.is_audio_enabled

    async def _on_offer(self, message: RelayedOfferMessage) -> None:
        session = self.sessions.get(message.sender_id)
        if session is None:
            # existing-users 처리 전에 offer가 먼저 도착한 경우
            logger.info(f"Offer from unknown sender {message.sender_id}, creating answerer session")
            session = await self._open_session(
                message.sender_id, message.sender_name, NegotiationRole.ANSWERER
            )
        await session.handle_offer(message.offer)

    async def _on_answer(self, message: RelayedAnswerMessage) -> None:
        session = self.sessions.get(message.sender_id)
        if session is None:
            logger.debug(f"Answer from unknown sender {message.sender_id} ignored")
            return
        await session.handle_answer(message.answer)

    async def _on_ice_candidate(self, message: RelayedIceCandidateMessage) -> None:
        session = self.sessions.get(message.sender_id)
        if session is None:
            logger.debug(f"ICE candidate from unknown sender {message.sender_id} ignored")
            return
        await session.handle_candidate(message.candidate)

    async def _on_user_media_state_changed(self, message: UserMediaStateChangedMessage) -> None:
        participant = self.participants.get(message.user_id)
        if participant is None:
            return
        participant.video_enabled = message.is_video_enabled
        participant.audio_enabled = message.is_audio_enabled

    async def _on_error(self, message: ErrorMessage) -> None:
        logger.warning(f"Signaling error {message.code}: {message.message}")
        if message.code == "room_full" and self.state is CoordinatorState.JOINING:
            self._set_status("Room is full")

    # ===== 세션 관리 =====

    async def _open_session(
        self,
        remote_id: str,
        remote_name: str,
        role: NegotiationRole,
    ) -> PeerSessionManager:
        self.participants.setdefault(
            remote_id, RemoteParticipant(user_id=remote_id, user_name=remote_name)
        )
        session = PeerSessionManager(
            remote_id,
            remote_name,
            role,
            room_id=self.room_id,
            signaling=self.signaling,
            link_factory=self.link_factory,
            link_config=self.link_config,
            local_media=self.local_media,
            policy=self.policy,
            on_remote_track=self._on_remote_track,
            on_peer_lost=self._on_peer_lost,
        )
        self.sessions[remote_id] = session
        logger.info(f"Peer session for {remote_name} ({remote_id}) created as {role.value}")
        await session.start()
        return session

    async def _close_session(self, remote_id: str) -> None:
        session = self.sessions.pop(remote_id, None)
        if session is not None:
            await session.close()

    def _on_remote_track(self, remote_id: str, track: Any) -> None:
        participant = self.participants.get(remote_id)
        if participant is None:
            return
        if participant.surface is None:
            participant.surface = self.surface_factory(remote_id)
        participant.surface.attach(track)
        participant.connected = True
        self._set_status(f"Video call active with {participant.user_name}")

    async def _on_peer_lost(self, session: PeerSessionManager) -> None:
        """재연결 예산을 모두 쓴 원격 참여자는 화면에서만 제거"""
        remote_id = session.remote_id
        if self.sessions.get(remote_id) is not session:
            # 같은 ID로 다시 입장해 세션이 교체된 경우
            logger.debug(f"Stale peer-lost for {remote_id} ignored")
            return
        participant = self.participants.get(remote_id)
        name = participant.user_name if participant else remote_id
        self._set_status(f"Connection lost with {name}")
        await self._close_session(remote_id)
        await self._remove_participant(remote_id)

    async def _remove_participant(self, remote_id: str) -> None:
        participant = self.participants.pop(remote_id, None)
        if participant is not None and participant.surface is not None:
            await participant.surface.detach()

    def _set_status(self, status: str) -> None:
        self.status = status
        logger.debug(f"Status: {status}")
        if self.on_status:
            self.on_status(status)
