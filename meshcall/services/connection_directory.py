"""연결 디렉터리 - connection ID별 룸/이름/미디어 상태"""

import logging

from meshcall.core.webrtc_config import UNKNOWN_USER_NAME
from meshcall.schemas.room import MediaState, Participant

logger = logging.getLogger(__name__)


class ConnectionDirectory:
    """connection ID -> Participant

    참여자 정보는 해당 연결의 메시지로만 변경되고 연결 해제 시 삭제된다.
    """

    def __init__(self):
        self._participants: dict[str, Participant] = {}

    def register(self, connection_id: str, room_id: str, display_name: str) -> Participant:
        """참여자 등록 (이미 있으면 룸/이름 갱신, 미디어 상태 유지)"""
        participant = self._participants.get(connection_id)
        if participant is None:
            participant = Participant(
                connection_id=connection_id,
                display_name=display_name,
                room_id=room_id,
            )
            self._participants[connection_id] = participant
        else:
            participant.room_id = room_id
            participant.display_name = display_name
        return participant

    def get(self, connection_id: str) -> Participant | None:
        """참여자 조회"""
        return self._participants.get(connection_id)

    def display_name(self, connection_id: str) -> str:
        """표시 이름 조회 (없으면 "Unknown")"""
        participant = self._participants.get(connection_id)
        return participant.display_name if participant else UNKNOWN_USER_NAME

    def update_media_state(
        self,
        connection_id: str,
        video_enabled: bool,
        audio_enabled: bool,
    ) -> Participant | None:
        """참여자 미디어 상태 업데이트"""
        participant = self._participants.get(connection_id)
        if participant is None:
            return None
        participant.media = MediaState(video_enabled=video_enabled, audio_enabled=audio_enabled)
        return participant

    def remove(self, connection_id: str) -> Participant | None:
        """참여자 삭제"""
        return self._participants.pop(connection_id, None)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)
