"""룸 스토어 - 레지스트리와 디렉터리를 묶은 주입 가능한 상태 저장소

모든 변경(입장/퇴장/미디어 상태)은 룸 단위 asyncio.Lock 안에서 수행되고,
변경 직후의 스냅샷을 같은 임계 구역에서 만들어 반환한다.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol

from meshcall.core.exceptions import RoomFullError
from meshcall.schemas.room import Participant, RoomSnapshot
from meshcall.services.connection_directory import ConnectionDirectory
from meshcall.services.room_registry import RoomRegistry
from meshcall.utils.room_id import normalize_room_id

logger = logging.getLogger(__name__)


@dataclass
class LeaveResult:
    """퇴장 결과"""
    room_id: str
    participant: Participant | None
    remaining: int
    snapshot: RoomSnapshot | None = None


@dataclass
class JoinResult:
    """입장 결과"""
    participant: Participant
    existing: list[Participant]
    snapshot: RoomSnapshot
    rejoined: bool = False
    # 다른 룸에서 옮겨온 경우 이전 룸 퇴장 결과
    previous: LeaveResult | None = None


@dataclass
class _RoomLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class RoomStore(Protocol):
    """룸 상태 저장소 인터페이스"""

    async def join(self, room_id: str, connection_id: str, display_name: str) -> JoinResult:
        ...

    async def leave(self, room_id: str, connection_id: str) -> LeaveResult:
        ...

    async def update_media_state(
        self,
        connection_id: str,
        video_enabled: bool,
        audio_enabled: bool,
    ) -> tuple[Participant, RoomSnapshot] | None:
        ...

    def get(self, connection_id: str) -> Participant | None:
        ...

    def snapshot(self, room_id: str) -> RoomSnapshot | None:
        ...

    def members(self, room_id: str) -> list[str]:
        ...

    def has_room(self, room_id: str) -> bool:
        ...


class InMemoryRoomStore:
    """단일 프로세스 인메모리 RoomStore 구현"""

    def __init__(
        self,
        max_participants: int = 0,
        registry: RoomRegistry | None = None,
        directory: ConnectionDirectory | None = None,
    ):
        """
        Args:
            max_participants: 룸당 최대 인원 (0이면 제한 없음)
            registry: 룸 레지스트리 (테스트 주입용)
            directory: 연결 디렉터리 (테스트 주입용)
        """
        self.max_participants = max_participants
        self.registry = registry or RoomRegistry()
        self.directory = directory or ConnectionDirectory()
        self._locks: dict[str, _RoomLock] = {}

    @asynccontextmanager
    async def _locked(self, *room_ids: str) -> AsyncIterator[None]:
        """룸 락 획득 (여러 룸은 정렬 순서로 획득해 교착 방지)"""
        async with AsyncExitStack() as stack:
            for room_id in sorted(set(room_ids)):
                entry = self._locks.setdefault(room_id, _RoomLock())
                entry.users += 1
                stack.callback(self._release_entry, room_id, entry)
                await stack.enter_async_context(entry.lock)
            yield

    def _release_entry(self, room_id: str, entry: _RoomLock) -> None:
        entry.users -= 1
        if entry.users == 0 and self._locks.get(room_id) is entry:
            del self._locks[room_id]

    async def join(self, room_id: str, connection_id: str, display_name: str) -> JoinResult:
        """룸 입장

        같은 룸에 이미 있는 연결의 재입장은 중복 없이 재공지로 처리하고,
        다른 룸에 있던 연결은 이전 룸에서 먼저 퇴장시킨다.

        Raises:
            ValueError: 룸 ID 또는 표시 이름이 비어 있는 경우
            RoomFullError: 룸 정원 초과
        """
        room_id = normalize_room_id(room_id)
        display_name = display_name.strip()
        if not display_name:
            raise ValueError("Display name must not be empty")

        current = self.directory.get(connection_id)
        previous_room = current.room_id if current and current.room_id != room_id else None
        lock_rooms = (room_id, previous_room) if previous_room else (room_id,)

        async with self._locked(*lock_rooms):
            rejoined = self.registry.contains(room_id, connection_id)
            if (
                not rejoined
                and self.max_participants
                and self.registry.member_count(room_id) >= self.max_participants
            ):
                raise RoomFullError(room_id, self.max_participants)

            previous = None
            if previous_room:
                previous = self._leave_locked(previous_room, connection_id)

            existing_ids = self.registry.add(room_id, connection_id)
            participant = self.directory.register(connection_id, room_id, display_name)
            existing = [p for cid in existing_ids if (p := self.directory.get(cid)) is not None]
            snapshot = self._snapshot_locked(room_id)

        if rejoined:
            logger.info(f"Connection {connection_id} re-announced in room {room_id}")
        else:
            logger.info(
                f"User {display_name} ({connection_id}) joined room {room_id}. "
                f"Total users: {snapshot.total_users}"
            )
        return JoinResult(
            participant=participant.model_copy(deep=True),
            existing=[p.model_copy(deep=True) for p in existing],
            snapshot=snapshot,
            rejoined=rejoined,
            previous=previous,
        )

    async def leave(self, room_id: str, connection_id: str) -> LeaveResult:
        """룸 퇴장 (알 수 없는 룸/연결이면 no-op)"""
        room_id = normalize_room_id(room_id)
        async with self._locked(room_id):
            return self._leave_locked(room_id, connection_id)

    def _leave_locked(self, room_id: str, connection_id: str) -> LeaveResult:
        if not self.registry.contains(room_id, connection_id):
            return LeaveResult(
                room_id=room_id,
                participant=None,
                remaining=self.registry.member_count(room_id),
                snapshot=self._snapshot_locked(room_id),
            )

        remaining = self.registry.remove(room_id, connection_id)
        participant = self.directory.remove(connection_id)
        logger.info(f"Connection {connection_id} left room {room_id}. Remaining: {remaining}")
        return LeaveResult(
            room_id=room_id,
            participant=participant,
            remaining=remaining,
            snapshot=self._snapshot_locked(room_id),
        )

    async def update_media_state(
        self,
        connection_id: str,
        video_enabled: bool,
        audio_enabled: bool,
    ) -> tuple[Participant, RoomSnapshot] | None:
        """참여자 미디어 상태 업데이트 후 (참여자, 룸 스냅샷) 반환"""
        current = self.directory.get(connection_id)
        if current is None:
            return None

        async with self._locked(current.room_id):
            participant = self.directory.update_media_state(
                connection_id, video_enabled, audio_enabled
            )
            # 락 대기 중 퇴장했을 수 있음
            if participant is None or participant.room_id != current.room_id:
                return None
            snapshot = self._snapshot_locked(participant.room_id)
        return participant.model_copy(deep=True), snapshot

    def get(self, connection_id: str) -> Participant | None:
        """참여자 조회 (복사본)"""
        participant = self.directory.get(connection_id)
        return participant.model_copy(deep=True) if participant else None

    def snapshot(self, room_id: str) -> RoomSnapshot | None:
        """룸 스냅샷 (룸이 없으면 None)"""
        try:
            room_id = normalize_room_id(room_id)
        except ValueError:
            return None
        return self._snapshot_locked(room_id)

    def _snapshot_locked(self, room_id: str) -> RoomSnapshot | None:
        if not self.registry.has_room(room_id):
            return None
        participants = [
            p.model_copy(deep=True)
            for cid in self.registry.members(room_id)
            if (p := self.directory.get(cid)) is not None
        ]
        return RoomSnapshot(
            room_id=room_id,
            total_users=len(participants),
            participants=participants,
        )

    def members(self, room_id: str) -> list[str]:
        """룸 참여자 connection ID 목록"""
        return self.registry.members(normalize_room_id(room_id))

    def has_room(self, room_id: str) -> bool:
        return self.registry.has_room(normalize_room_id(room_id))

    def room_count(self) -> int:
        return self.registry.room_count()

    def connection_count(self, room_id: str) -> int:
        return self.registry.member_count(normalize_room_id(room_id))
