"""meshcall 엔드포인트 측 라이브러리

Room Coordinator, Peer Session Manager, Connection State Machine과
aiortc / websockets 어댑터를 제공한다.
"""

from meshcall.client.peer_session import PeerSessionManager
from meshcall.client.reconnect import ReconnectPolicy
from meshcall.client.room_coordinator import CoordinatorState, RemoteParticipant, RoomCoordinator
from meshcall.client.state_machine import ConnectionStateMachine, NegotiationRole, PeerLinkState

__all__ = [
    "ConnectionStateMachine",
    "CoordinatorState",
    "NegotiationRole",
    "PeerLinkState",
    "PeerSessionManager",
    "ReconnectPolicy",
    "RemoteParticipant",
    "RoomCoordinator",
]
