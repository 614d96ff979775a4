"""WebSocket 메시지 핸들러 단위 테스트

- JoinRoomHandler: 참여자 목록 전송, 다른 참여자 알림, 재입장, 정원 초과
- OfferAnswerHandler: offer/answer 중계, 발신자 이름 기본값
- ICECandidateHandler: 중계
- MediaStateHandler: 상태 변경 알림, 미등록 연결
- dispatch_message / HANDLERS
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from meshcall.core.exceptions import RoomFullError
from meshcall.handlers.websocket_message_handlers import (
    HANDLERS,
    ICECandidateHandler,
    JoinRoomHandler,
    MediaStateHandler,
    OfferAnswerHandler,
    dispatch_message,
)
from meshcall.schemas.room import MediaState, Participant, RoomSnapshot
from meshcall.schemas.signaling import (
    CLIENT_MESSAGE_TYPES,
    AnswerMessage,
    IceCandidateMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    MediaStateChangeMessage,
    OfferMessage,
    SignalingMessageType,
)
from meshcall.services.room_store import JoinResult


# ===== Test Fixtures =====


def _participant(cid: str, name: str, video: bool = True) -> Participant:
    return Participant(
        connection_id=cid,
        display_name=name,
        room_id="ROOM1",
        media=MediaState(video_enabled=video),
    )


@pytest.fixture
def mock_relay():
    """SignalingRelay mock"""
    relay = MagicMock()
    relay.store.join = AsyncMock()
    relay.store.update_media_state = AsyncMock()
    relay.store.get = MagicMock(return_value=_participant("me", "Me"))
    relay.send = AsyncMock(return_value=True)
    relay.send_error = AsyncMock(return_value=True)
    relay.broadcast = AsyncMock(return_value=1)
    relay.route = AsyncMock(return_value=True)
    relay.announce_departure = AsyncMock()
    relay.leave_current_room = AsyncMock()
    relay.sender_name = MagicMock(return_value="Me")
    return relay


# ===== JoinRoomHandler 테스트 =====


@pytest.mark.asyncio
async def test_join_handler_sends_existing_users_and_notifies_others(mock_relay):
    """입장 시 본인에게 existing-users/room-info, 다른 참여자에게 user-joined/room-info"""
    alice = _participant("alice", "Alice")
    me = _participant("me", "Me")
    mock_relay.store.join.return_value = JoinResult(
        participant=me,
        existing=[alice],
        snapshot=RoomSnapshot(room_id="ROOM1", total_users=2, participants=[alice, me]),
    )

    await JoinRoomHandler().handle(
        mock_relay, "me", JoinRoomMessage(room_id="room1", user_name="Me")
    )

    sent_types = [call.args[1].type for call in mock_relay.send.call_args_list]
    assert sent_types == ["existing-users", "room-info"]
    existing = mock_relay.send.call_args_list[0].args[1]
    assert existing.to_wire()["users"] == [{"userId": "alice", "userName": "Alice"}]

    broadcast_types = [call.args[1].type for call in mock_relay.broadcast.call_args_list]
    assert broadcast_types == ["user-joined", "room-info"]
    assert mock_relay.broadcast.call_args_list[0].args[0] == ["alice"]


@pytest.mark.asyncio
async def test_join_handler_rejoin_does_not_broadcast(mock_relay):
    """재입장은 다른 참여자에게 알리지 않음"""
    me = _participant("me", "Me")
    mock_relay.store.join.return_value = JoinResult(
        participant=me,
        existing=[],
        snapshot=RoomSnapshot(room_id="ROOM1", total_users=1, participants=[me]),
        rejoined=True,
    )

    await JoinRoomHandler().handle(mock_relay, "me", JoinRoomMessage(room_id="ROOM1", user_name="Me"))

    mock_relay.broadcast.assert_not_called()
    assert mock_relay.send.await_count == 2


@pytest.mark.asyncio
async def test_join_handler_room_full(mock_relay):
    """정원 초과 시 room_full 에러"""
    mock_relay.store.join.side_effect = RoomFullError("ROOM1", 4)

    await JoinRoomHandler().handle(mock_relay, "me", JoinRoomMessage(room_id="ROOM1", user_name="Me"))

    mock_relay.send_error.assert_awaited_once()
    assert mock_relay.send_error.call_args.args[1] == "room_full"
    mock_relay.broadcast.assert_not_called()


@pytest.mark.asyncio
async def test_join_handler_blank_name(mock_relay):
    """공백 이름은 invalid_message 에러"""
    mock_relay.store.join.side_effect = ValueError("Display name must not be empty")

    await JoinRoomHandler().handle(mock_relay, "me", JoinRoomMessage(room_id="ROOM1", user_name=" "))

    assert mock_relay.send_error.call_args.args[1] == "invalid_message"


# ===== OfferAnswerHandler 테스트 =====


@pytest.mark.asyncio
async def test_offer_handler_stamps_sender(mock_relay):
    """offer 중계 시 senderId/senderName 추가"""
    handler = OfferAnswerHandler(SignalingMessageType.OFFER)
    offer = {"type": "offer", "sdp": "v=0"}

    await handler.handle(
        mock_relay, "me", OfferMessage(target_user_id="bob", offer=offer, room_id="ROOM1")
    )

    sender, target, relayed = mock_relay.route.call_args.args
    assert sender == "me"
    assert target == "bob"
    assert relayed.to_wire() == {
        "type": "offer",
        "offer": offer,
        "senderId": "me",
        "senderName": "Me",
        "roomId": "ROOM1",
    }


@pytest.mark.asyncio
async def test_answer_handler_unknown_sender_name(mock_relay):
    """발신자 이름을 찾지 못하면 Unknown"""
    mock_relay.sender_name.return_value = "Unknown"
    handler = OfferAnswerHandler(SignalingMessageType.ANSWER)

    await handler.handle(
        mock_relay,
        "me",
        AnswerMessage(target_user_id="bob", answer={"type": "answer", "sdp": "v=0"}, room_id="ROOM1"),
    )

    relayed = mock_relay.route.call_args.args[2]
    assert relayed.type == "answer"
    assert relayed.sender_name == "Unknown"


# ===== ICECandidateHandler 테스트 =====


@pytest.mark.asyncio
async def test_ice_candidate_handler_routes_to_target(mock_relay):
    candidate = {"candidate": "candidate:1 1 udp 1 10.0.0.1 5000 typ host", "sdpMid": "0"}

    await ICECandidateHandler().handle(
        mock_relay,
        "me",
        IceCandidateMessage(target_user_id="bob", candidate=candidate, room_id="ROOM1"),
    )

    _, target, relayed = mock_relay.route.call_args.args
    assert target == "bob"
    assert relayed.to_wire() == {
        "type": "ice-candidate",
        "candidate": candidate,
        "senderId": "me",
        "roomId": "ROOM1",
    }


# ===== MediaStateHandler 테스트 =====


@pytest.mark.asyncio
async def test_media_state_handler_broadcasts_to_others(mock_relay):
    """미디어 상태 변경은 본인 제외 알림, room-info는 전체"""
    me = _participant("me", "Me", video=False)
    bob = _participant("bob", "Bob")
    mock_relay.store.update_media_state.return_value = (
        me,
        RoomSnapshot(room_id="ROOM1", total_users=2, participants=[me, bob]),
    )

    await MediaStateHandler().handle(
        mock_relay,
        "me",
        MediaStateChangeMessage(room_id="ROOM1", is_video_enabled=False, is_audio_enabled=True),
    )

    first, second = mock_relay.broadcast.call_args_list
    assert first.args[1].type == "user-media-state-changed"
    assert first.args[1].is_video_enabled is False
    assert first.kwargs["exclude_connection_id"] == "me"
    assert second.args[1].type == "room-info"
    assert second.args[0] == ["me", "bob"]


@pytest.mark.asyncio
async def test_media_state_handler_unknown_connection(mock_relay):
    mock_relay.store.update_media_state.return_value = None

    await MediaStateHandler().handle(
        mock_relay,
        "ghost",
        MediaStateChangeMessage(room_id="ROOM1", is_video_enabled=True, is_audio_enabled=True),
    )

    mock_relay.broadcast.assert_not_called()


# ===== dispatch_message 테스트 =====


def test_handlers_cover_every_client_message_type():
    """모든 클라이언트 메시지 타입에 핸들러 등록"""
    assert set(HANDLERS) == set(CLIENT_MESSAGE_TYPES)


@pytest.mark.asyncio
async def test_dispatch_media_state_requires_room_membership(mock_relay):
    """입장 전 media-state-change는 not_in_room 에러"""
    mock_relay.store.get.return_value = None

    await dispatch_message(
        mock_relay,
        "me",
        MediaStateChangeMessage(room_id="ROOM1", is_video_enabled=False, is_audio_enabled=True),
    )

    assert mock_relay.send_error.call_args.args[1] == "not_in_room"
    mock_relay.store.update_media_state.assert_not_called()


@pytest.mark.asyncio
async def test_dispatch_offer_without_room_is_routed(mock_relay):
    """대상 지정 메시지는 발신자 입장 여부와 관계없이 중계"""
    mock_relay.store.get.return_value = None
    mock_relay.sender_name.return_value = "Unknown"

    await dispatch_message(
        mock_relay,
        "me",
        OfferMessage(target_user_id="bob", offer={"type": "offer", "sdp": "x"}, room_id="ROOM1"),
    )

    mock_relay.send_error.assert_not_called()
    target_id, relayed = mock_relay.route.call_args.args[1:]
    assert target_id == "bob"
    assert relayed.sender_name == "Unknown"


@pytest.mark.asyncio
async def test_dispatch_leave_without_room_is_allowed(mock_relay):
    mock_relay.store.get.return_value = None

    await dispatch_message(mock_relay, "me", LeaveRoomMessage())

    mock_relay.leave_current_room.assert_awaited_once_with("me")
    mock_relay.send_error.assert_not_called()
