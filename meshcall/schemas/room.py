"""룸/참여자 도메인 모델"""

from pydantic import BaseModel, ConfigDict, Field


class MediaState(BaseModel):
    """참여자 미디어 상태"""
    video_enabled: bool = True
    audio_enabled: bool = True


class Participant(BaseModel):
    """룸 참여자 (Connection Directory 소유)"""
    connection_id: str
    display_name: str
    room_id: str
    media: MediaState = Field(default_factory=MediaState)


class RoomSnapshot(BaseModel):
    """특정 시점의 룸 상태 (파생 데이터, 권한 없음)"""

    model_config = ConfigDict(frozen=True)

    room_id: str
    total_users: int
    participants: list[Participant]
