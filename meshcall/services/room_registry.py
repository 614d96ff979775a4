"""룸 레지스트리 - 룸 ID별 참여 connection ID 관리"""

import logging

logger = logging.getLogger(__name__)


class RoomRegistry:
    """룸 ID -> 참여자 connection ID 집합 (입장 순서 유지)

    동기 메서드만 제공하며 동시성 제어는 RoomStore가 담당한다.
    """

    def __init__(self):
        # room_id -> {connection_id: None} (dict로 입장 순서 유지)
        self._rooms: dict[str, dict[str, None]] = {}

    def add(self, room_id: str, connection_id: str) -> list[str]:
        """룸에 연결 추가 (룸이 없으면 생성)

        Returns:
            추가 전부터 있던 connection ID 목록 (본인 제외, 입장 순서)
        """
        members = self._rooms.setdefault(room_id, {})
        existing = [cid for cid in members if cid != connection_id]
        if connection_id not in members:
            members[connection_id] = None
            logger.debug(f"Room {room_id}: added {connection_id} ({len(members)} members)")
        return existing

    def remove(self, room_id: str, connection_id: str) -> int:
        """룸에서 연결 제거, 비면 룸 삭제

        알 수 없는 룸/연결이면 아무것도 하지 않는다.

        Returns:
            남은 참여자 수
        """
        members = self._rooms.get(room_id)
        if members is None:
            return 0

        members.pop(connection_id, None)
        remaining = len(members)
        if remaining == 0:
            del self._rooms[room_id]
            logger.debug(f"Room {room_id} deleted (empty)")
        return remaining

    def members(self, room_id: str) -> list[str]:
        """룸 참여자 connection ID 목록 (입장 순서)"""
        return list(self._rooms.get(room_id, ()))

    def contains(self, room_id: str, connection_id: str) -> bool:
        return connection_id in self._rooms.get(room_id, ())

    def has_room(self, room_id: str) -> bool:
        return room_id in self._rooms

    def member_count(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, ()))

    def room_count(self) -> int:
        return len(self._rooms)
