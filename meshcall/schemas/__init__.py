from meshcall.schemas.room import MediaState, Participant, RoomSnapshot
from meshcall.schemas.signaling import (
    ClientMessage,
    ServerMessage,
    SignalingMessageType,
    client_message_adapter,
    server_message_adapter,
)

__all__ = [
    "ClientMessage",
    "MediaState",
    "Participant",
    "RoomSnapshot",
    "ServerMessage",
    "SignalingMessageType",
    "client_message_adapter",
    "server_message_adapter",
]
