"""시그널링 WebSocket 메시지 Pydantic 스키마

클라이언트 -> 서버, 서버 -> 클라이언트 메시지를 각각 `type` 필드로 구분되는
닫힌 union으로 정의한다. 알 수 없는 `type`은 검증 단계에서 거부된다.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from meshcall.schemas.room import Participant, RoomSnapshot


class SignalingMessageType(str, Enum):
    """시그널링 메시지 타입"""
    # Client -> Server
    JOIN_ROOM = "join-room"
    LEAVE_ROOM = "leave-room"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    MEDIA_STATE_CHANGE = "media-state-change"
    # Server -> Client
    CONNECTED = "connected"
    EXISTING_USERS = "existing-users"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    ROOM_INFO = "room-info"
    USER_MEDIA_STATE_CHANGED = "user-media-state-changed"
    ERROR = "error"


class WireModel(BaseModel):
    """camelCase alias를 쓰는 메시지 기본 클래스"""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """WebSocket 전송용 dict 변환"""
        return self.model_dump(by_alias=True, mode="json")


# ===== Client -> Server =====


class JoinRoomMessage(WireModel):
    """룸 입장 요청"""
    type: Literal["join-room"] = "join-room"
    room_id: str = Field(alias="roomId", min_length=1)
    user_name: str = Field(alias="userName", min_length=1)


class LeaveRoomMessage(WireModel):
    """룸 퇴장 요청 (연결은 유지)"""
    type: Literal["leave-room"] = "leave-room"
    room_id: str | None = Field(default=None, alias="roomId")


class OfferMessage(WireModel):
    """SDP Offer (대상 지정)"""
    type: Literal["offer"] = "offer"
    target_user_id: str = Field(alias="targetUserId", min_length=1)
    offer: dict[str, Any]  # RTCSessionDescriptionInit
    room_id: str = Field(alias="roomId")


class AnswerMessage(WireModel):
    """SDP Answer (대상 지정)"""
    type: Literal["answer"] = "answer"
    target_user_id: str = Field(alias="targetUserId", min_length=1)
    answer: dict[str, Any]  # RTCSessionDescriptionInit
    room_id: str = Field(alias="roomId")


class IceCandidateMessage(WireModel):
    """ICE Candidate (대상 지정)"""
    type: Literal["ice-candidate"] = "ice-candidate"
    target_user_id: str = Field(alias="targetUserId", min_length=1)
    candidate: dict[str, Any]  # RTCIceCandidateInit
    room_id: str = Field(alias="roomId")


class MediaStateChangeMessage(WireModel):
    """카메라/마이크 상태 변경"""
    type: Literal["media-state-change"] = "media-state-change"
    room_id: str = Field(alias="roomId")
    is_video_enabled: bool = Field(alias="isVideoEnabled")
    is_audio_enabled: bool = Field(alias="isAudioEnabled")


ClientMessage = Annotated[
    Union[
        JoinRoomMessage,
        LeaveRoomMessage,
        OfferMessage,
        AnswerMessage,
        IceCandidateMessage,
        MediaStateChangeMessage,
    ],
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)

CLIENT_MESSAGE_TYPES = frozenset(
    {
        SignalingMessageType.JOIN_ROOM,
        SignalingMessageType.LEAVE_ROOM,
        SignalingMessageType.OFFER,
        SignalingMessageType.ANSWER,
        SignalingMessageType.ICE_CANDIDATE,
        SignalingMessageType.MEDIA_STATE_CHANGE,
    }
)


# ===== Server -> Client =====


class UserSummary(WireModel):
    """참여자 요약"""
    user_id: str = Field(alias="userId")
    user_name: str = Field(alias="userName")

    @classmethod
    def from_participant(cls, participant: Participant) -> "UserSummary":
        return cls(user_id=participant.connection_id, user_name=participant.display_name)


class UserState(UserSummary):
    """미디어 상태를 포함한 참여자 정보"""
    is_video_enabled: bool = Field(default=True, alias="isVideoEnabled")
    is_audio_enabled: bool = Field(default=True, alias="isAudioEnabled")

    @classmethod
    def from_participant(cls, participant: Participant) -> "UserState":
        return cls(
            user_id=participant.connection_id,
            user_name=participant.display_name,
            is_video_enabled=participant.media.video_enabled,
            is_audio_enabled=participant.media.audio_enabled,
        )


class ConnectedMessage(WireModel):
    """연결 수립 알림 (서버가 부여한 connection ID 전달)"""
    type: Literal["connected"] = "connected"
    user_id: str = Field(alias="userId")


class ExistingUsersMessage(WireModel):
    """입장 시점에 이미 룸에 있던 참여자 목록"""
    type: Literal["existing-users"] = "existing-users"
    users: list[UserSummary]


class UserJoinedMessage(WireModel):
    """다른 사용자 입장 알림"""
    type: Literal["user-joined"] = "user-joined"
    user_id: str = Field(alias="userId")
    user_name: str = Field(alias="userName")


class UserLeftMessage(WireModel):
    """다른 사용자 퇴장 알림"""
    type: Literal["user-left"] = "user-left"
    user_id: str = Field(alias="userId")
    user_name: str = Field(alias="userName")


class RoomInfoMessage(WireModel):
    """룸 스냅샷"""
    type: Literal["room-info"] = "room-info"
    room_id: str = Field(alias="roomId")
    total_users: int = Field(alias="totalUsers")
    users: list[UserState]

    @classmethod
    def from_snapshot(cls, snapshot: RoomSnapshot) -> "RoomInfoMessage":
        return cls(
            room_id=snapshot.room_id,
            total_users=snapshot.total_users,
            users=[UserState.from_participant(p) for p in snapshot.participants],
        )


class RelayedOfferMessage(WireModel):
    """중계된 SDP Offer"""
    type: Literal["offer"] = "offer"
    offer: dict[str, Any]
    sender_id: str = Field(alias="senderId")
    sender_name: str = Field(alias="senderName")
    room_id: str = Field(alias="roomId")


class RelayedAnswerMessage(WireModel):
    """중계된 SDP Answer"""
    type: Literal["answer"] = "answer"
    answer: dict[str, Any]
    sender_id: str = Field(alias="senderId")
    sender_name: str = Field(alias="senderName")
    room_id: str = Field(alias="roomId")


class RelayedIceCandidateMessage(WireModel):
    """중계된 ICE Candidate"""
    type: Literal["ice-candidate"] = "ice-candidate"
    candidate: dict[str, Any]
    sender_id: str = Field(alias="senderId")
    room_id: str = Field(alias="roomId")


class UserMediaStateChangedMessage(WireModel):
    """다른 사용자의 미디어 상태 변경 알림"""
    type: Literal["user-media-state-changed"] = "user-media-state-changed"
    user_id: str = Field(alias="userId")
    user_name: str = Field(alias="userName")
    is_video_enabled: bool = Field(alias="isVideoEnabled")
    is_audio_enabled: bool = Field(alias="isAudioEnabled")


class ErrorMessage(WireModel):
    """에러 메시지"""
    type: Literal["error"] = "error"
    code: str
    message: str


ServerMessage = Annotated[
    Union[
        ConnectedMessage,
        ExistingUsersMessage,
        UserJoinedMessage,
        UserLeftMessage,
        RoomInfoMessage,
        RelayedOfferMessage,
        RelayedAnswerMessage,
        RelayedIceCandidateMessage,
        UserMediaStateChangedMessage,
        ErrorMessage,
    ],
    Field(discriminator="type"),
]

server_message_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)

SERVER_MESSAGE_TYPES = frozenset(
    {
        SignalingMessageType.CONNECTED,
        SignalingMessageType.EXISTING_USERS,
        SignalingMessageType.USER_JOINED,
        SignalingMessageType.USER_LEFT,
        SignalingMessageType.ROOM_INFO,
        SignalingMessageType.OFFER,
        SignalingMessageType.ANSWER,
        SignalingMessageType.ICE_CANDIDATE,
        SignalingMessageType.USER_MEDIA_STATE_CHANGED,
        SignalingMessageType.ERROR,
    }
)


class IceServer(BaseModel):
    """ICE 서버 설정"""
    urls: str | list[str]
    username: str | None = None
    credential: str | None = None
