"""WebSocket 메시지 핸들러 - Strategy Pattern 구현"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from meshcall.core.exceptions import RoomFullError
from meshcall.schemas.signaling import (
    CLIENT_MESSAGE_TYPES,
    AnswerMessage,
    ClientMessage,
    ExistingUsersMessage,
    IceCandidateMessage,
    JoinRoomMessage,
    MediaStateChangeMessage,
    OfferMessage,
    RelayedAnswerMessage,
    RelayedIceCandidateMessage,
    RelayedOfferMessage,
    RoomInfoMessage,
    SignalingMessageType,
    UserJoinedMessage,
    UserMediaStateChangedMessage,
    UserSummary,
)

if TYPE_CHECKING:
    from meshcall.services.signaling_relay import SignalingRelay

logger = logging.getLogger(__name__)


class MessageHandler(Protocol):
    """메시지 핸들러 프로토콜"""

    async def handle(self, relay: SignalingRelay, connection_id: str, message: ClientMessage) -> None:
        """메시지 처리

        Args:
            relay: 시그널링 릴레이
            connection_id: 발신 연결 ID
            message: 검증된 메시지
        """
        ...


class JoinRoomHandler:
    """JOIN_ROOM 메시지 핸들러"""

    async def handle(self, relay: SignalingRelay, connection_id: str, message: JoinRoomMessage) -> None:
        try:
            result = await relay.store.join(message.room_id, connection_id, message.user_name)
        except RoomFullError as e:
            logger.info(f"Join rejected for {connection_id}: {e}")
            await relay.send_error(connection_id, "room_full", str(e))
            return
        except ValueError as e:
            await relay.send_error(connection_id, "invalid_message", str(e))
            return

        # 다른 룸에서 옮겨온 경우 이전 룸에 퇴장 알림
        if result.previous is not None:
            await relay.announce_departure(connection_id, result.previous)

        existing_ids = [p.connection_id for p in result.existing]
        room_info = RoomInfoMessage.from_snapshot(result.snapshot)

        await relay.send(
            connection_id,
            ExistingUsersMessage(users=[UserSummary.from_participant(p) for p in result.existing]),
        )

        # 재입장은 본인에게만 재공지
        if not result.rejoined:
            relay.metrics.room_joins_total.add(1)
            await relay.broadcast(
                existing_ids,
                UserJoinedMessage(
                    user_id=connection_id,
                    user_name=result.participant.display_name,
                ),
            )

        await relay.send(connection_id, room_info)
        if not result.rejoined:
            await relay.broadcast(existing_ids, room_info)


class LeaveRoomHandler:
    """LEAVE_ROOM 메시지 핸들러 (연결은 유지)"""

    async def handle(self, relay: SignalingRelay, connection_id: str, message: ClientMessage) -> None:
        await relay.leave_current_room(connection_id)


class OfferAnswerHandler:
    """OFFER/ANSWER 메시지 핸들러 (통합)"""

    def __init__(self, message_type: SignalingMessageType):
        """
        Args:
            message_type: OFFER 또는 ANSWER
        """
        self.message_type = message_type

    async def handle(
        self,
        relay: SignalingRelay,
        connection_id: str,
        message: OfferMessage | AnswerMessage,
    ) -> None:
        sender_name = relay.sender_name(connection_id)

        if isinstance(message, OfferMessage):
            relayed = RelayedOfferMessage(
                offer=message.offer,
                sender_id=connection_id,
                sender_name=sender_name,
                room_id=message.room_id,
            )
        else:
            relayed = RelayedAnswerMessage(
                answer=message.answer,
                sender_id=connection_id,
                sender_name=sender_name,
                room_id=message.room_id,
            )

        await relay.route(connection_id, message.target_user_id, relayed)


class ICECandidateHandler:
    """ICE_CANDIDATE 메시지 핸들러"""

    async def handle(self, relay: SignalingRelay, connection_id: str, message: IceCandidateMessage) -> None:
        await relay.route(
            connection_id,
            message.target_user_id,
            RelayedIceCandidateMessage(
                candidate=message.candidate,
                sender_id=connection_id,
                room_id=message.room_id,
            ),
        )


class MediaStateHandler:
    """MEDIA_STATE_CHANGE 메시지 핸들러"""

    async def handle(
        self,
        relay: SignalingRelay,
        connection_id: str,
        message: MediaStateChangeMessage,
    ) -> None:
        result = await relay.store.update_media_state(
            connection_id,
            message.is_video_enabled,
            message.is_audio_enabled,
        )
        if result is None:
            return

        participant, snapshot = result
        recipients = [p.connection_id for p in snapshot.participants]

        # 다른 참여자들에게 알림
        await relay.broadcast(
            recipients,
            UserMediaStateChangedMessage(
                user_id=connection_id,
                user_name=participant.display_name,
                is_video_enabled=participant.media.video_enabled,
                is_audio_enabled=participant.media.audio_enabled,
            ),
            exclude_connection_id=connection_id,
        )
        await relay.broadcast(recipients, RoomInfoMessage.from_snapshot(snapshot))


# 핸들러 레지스트리
HANDLERS: dict[SignalingMessageType, MessageHandler] = {
    SignalingMessageType.JOIN_ROOM: JoinRoomHandler(),
    SignalingMessageType.LEAVE_ROOM: LeaveRoomHandler(),
    SignalingMessageType.OFFER: OfferAnswerHandler(SignalingMessageType.OFFER),
    SignalingMessageType.ANSWER: OfferAnswerHandler(SignalingMessageType.ANSWER),
    SignalingMessageType.ICE_CANDIDATE: ICECandidateHandler(),
    SignalingMessageType.MEDIA_STATE_CHANGE: MediaStateHandler(),
}

_unhandled = CLIENT_MESSAGE_TYPES - HANDLERS.keys()
if _unhandled:
    raise RuntimeError(f"No handler registered for: {sorted(t.value for t in _unhandled)}")

# 룸 입장 후에만 허용되는 메시지 (대상 지정 메시지는 대상만 보고 중계)
_ROOM_REQUIRED_TYPES = frozenset({SignalingMessageType.MEDIA_STATE_CHANGE})


async def dispatch_message(relay: SignalingRelay, connection_id: str, message: ClientMessage) -> None:
    """메시지 타입에 따라 적절한 핸들러로 디스패치

    Args:
        relay: 시그널링 릴레이
        connection_id: 발신 연결 ID
        message: 검증된 클라이언트 메시지
    """
    msg_type = SignalingMessageType(message.type)

    if msg_type in _ROOM_REQUIRED_TYPES and relay.store.get(connection_id) is None:
        await relay.send_error(connection_id, "not_in_room", "Join a room before sending messages")
        return

    await HANDLERS[msg_type].handle(relay, connection_id, message)
