"""피어 링크별 연결 상태 머신"""

import logging
from collections.abc import Callable
from enum import Enum

from meshcall.core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class PeerLinkState(str, Enum):
    """피어 링크 수명주기 상태"""
    NEW = "new"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    DEGRADED = "degraded"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class NegotiationRole(str, Enum):
    """협상 역할 (세션 생성 시 고정)"""
    OFFERER = "offerer"
    ANSWERER = "answerer"

    @classmethod
    def for_arrival(cls, remote_is_newcomer: bool) -> "NegotiationRole":
        """이미 룸에 있던 쪽이 offer를 보낸다

        Args:
            remote_is_newcomer: 원격 참여자가 나보다 나중에 입장했는지 여부
        """
        return cls.OFFERER if remote_is_newcomer else cls.ANSWERER


_TRANSITIONS: dict[PeerLinkState, frozenset[PeerLinkState]] = {
    PeerLinkState.NEW: frozenset({PeerLinkState.NEGOTIATING, PeerLinkState.CLOSED}),
    PeerLinkState.NEGOTIATING: frozenset(
        {
            PeerLinkState.NEGOTIATING,
            PeerLinkState.CONNECTED,
            PeerLinkState.DEGRADED,
            PeerLinkState.CLOSED,
        }
    ),
    PeerLinkState.CONNECTED: frozenset(
        {PeerLinkState.DEGRADED, PeerLinkState.NEGOTIATING, PeerLinkState.CLOSED}
    ),
    PeerLinkState.DEGRADED: frozenset(
        {
            PeerLinkState.CONNECTED,
            PeerLinkState.RECONNECTING,
            PeerLinkState.NEGOTIATING,
            PeerLinkState.CLOSED,
        }
    ),
    PeerLinkState.RECONNECTING: frozenset(
        {
            PeerLinkState.NEGOTIATING,
            PeerLinkState.CONNECTED,
            PeerLinkState.DEGRADED,
            PeerLinkState.CLOSED,
        }
    ),
    PeerLinkState.CLOSED: frozenset(),
}


class ConnectionStateMachine:
    """상태 전이 검증 및 기록"""

    def __init__(
        self,
        remote_id: str,
        on_change: Callable[[PeerLinkState, PeerLinkState], None] | None = None,
    ):
        self.remote_id = remote_id
        self._state = PeerLinkState.NEW
        self._on_change = on_change

    @property
    def state(self) -> PeerLinkState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is PeerLinkState.CLOSED

    def can_transition(self, target: PeerLinkState) -> bool:
        return target in _TRANSITIONS[self._state]

    def transition(self, target: PeerLinkState) -> None:
        """상태 전이

        Raises:
            InvalidStateTransition: 허용되지 않은 전이
        """
        if not self.can_transition(target):
            raise InvalidStateTransition(
                f"Peer {self.remote_id}: {self._state.value} -> {target.value} is not allowed"
            )

        previous = self._state
        self._state = target
        if previous is not target:
            logger.debug(f"Peer {self.remote_id}: {previous.value} -> {target.value}")
            if self._on_change:
                self._on_change(previous, target)
