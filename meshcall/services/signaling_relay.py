"""시그널링 릴레이 - 연결 수명주기와 메시지 라우팅

대상 지정 메시지(offer/answer/ice-candidate)는 발신자 정보만 덧붙여 정확히 그
대상에게만 전달한다. 대상이 없으면 조용히 폐기한다 (best-effort).
"""

import json
import logging
from collections.abc import Iterable

from fastapi import WebSocket
from pydantic import ValidationError

from meshcall.core.exceptions import SignalingRouteError
from meshcall.core.telemetry import SignalingMetrics, get_meter
from meshcall.core.webrtc_config import UNKNOWN_USER_NAME
from meshcall.handlers.websocket_message_handlers import dispatch_message
from meshcall.schemas.signaling import (
    ConnectedMessage,
    ErrorMessage,
    RoomInfoMessage,
    UserLeftMessage,
    WireModel,
    client_message_adapter,
)
from meshcall.services.room_store import LeaveResult, RoomStore
from meshcall.services.signaling_service import ConnectionManager

logger = logging.getLogger(__name__)


class SignalingRelay:
    """시그널링 릴레이

    RoomStore와 ConnectionManager를 주입받아 사용한다 (프로세스당 1개).
    """

    def __init__(
        self,
        store: RoomStore,
        connections: ConnectionManager,
        metrics: SignalingMetrics | None = None,
    ):
        self.store = store
        self.connections = connections
        self.metrics = metrics or SignalingMetrics(get_meter())

    # ===== 연결 수명주기 =====

    async def connect(self, websocket: WebSocket) -> str:
        """연결 수락 후 connection ID 통지"""
        connection_id = await self.connections.connect(websocket)
        self.metrics.active_connections.add(1)
        await self.send(connection_id, ConnectedMessage(user_id=connection_id))
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """연결 해제 (룸 퇴장 처리 포함)"""
        try:
            await self.leave_current_room(connection_id)
        finally:
            self.connections.disconnect(connection_id)
            self.metrics.active_connections.add(-1)

    async def handle_text(self, connection_id: str, text: str) -> None:
        """수신한 텍스트 프레임 처리"""
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from {connection_id}")
            await self.send_error(connection_id, "invalid_message", "Invalid JSON format")
            return
        await self.handle_data(connection_id, data)

    async def handle_data(self, connection_id: str, data: object) -> None:
        """수신한 메시지 검증 후 핸들러로 디스패치"""
        try:
            message = client_message_adapter.validate_python(data)
        except ValidationError as e:
            msg_type = data.get("type") if isinstance(data, dict) else None
            logger.warning(f"Invalid signaling message type={msg_type} from {connection_id}")
            await self.send_error(
                connection_id,
                "invalid_message",
                f"Invalid message: {e.error_count()} validation error(s)",
            )
            return

        await dispatch_message(self, connection_id, message)

    # ===== 룸 퇴장 =====

    async def leave_current_room(self, connection_id: str) -> LeaveResult | None:
        """연결이 속한 룸에서 퇴장 (룸이 없으면 no-op)"""
        participant = self.store.get(connection_id)
        if participant is None:
            return None

        result = await self.store.leave(participant.room_id, connection_id)
        await self.announce_departure(connection_id, result)
        return result

    async def announce_departure(self, connection_id: str, result: LeaveResult) -> None:
        """남은 참여자들에게 퇴장 알림 및 룸 스냅샷 전송"""
        if result.participant is None:
            return
        self.metrics.room_leaves_total.add(1)

        if result.snapshot is None:
            logger.info(f"Room {result.room_id} closed")
            return

        recipients = [p.connection_id for p in result.snapshot.participants]
        await self.broadcast(
            recipients,
            UserLeftMessage(user_id=connection_id, user_name=result.participant.display_name),
        )
        await self.broadcast(recipients, RoomInfoMessage.from_snapshot(result.snapshot))

    # ===== 전송 =====

    def sender_name(self, connection_id: str) -> str:
        """발신자 표시 이름 (없으면 "Unknown")"""
        participant = self.store.get(connection_id)
        return participant.display_name if participant else UNKNOWN_USER_NAME

    async def send(self, connection_id: str, message: WireModel) -> bool:
        """특정 연결에게 전송 (대상이 없으면 False)"""
        try:
            return await self.connections.send_to(connection_id, message.to_wire())
        except SignalingRouteError:
            logger.debug(f"Connection {connection_id} is gone, message dropped")
            return False

    async def send_error(self, connection_id: str, code: str, message: str) -> bool:
        return await self.send(connection_id, ErrorMessage(code=code, message=message))

    async def route(self, sender_id: str, target_id: str, message: WireModel) -> bool:
        """대상 지정 메시지 전달

        대상이 등록되어 있지 않으면 폐기하고 발신자에게는 아무것도 알리지 않는다.
        """
        if self.store.get(target_id) is None:
            logger.debug(f"Target {target_id} not found for {message.type} from {sender_id}, dropped")
            self.metrics.dropped_messages_total.add(1, {"type": message.type})
            return False

        try:
            delivered = await self.connections.send_to(target_id, message.to_wire())
        except SignalingRouteError as e:
            logger.debug(f"{e}, {message.type} from {sender_id} dropped")
            delivered = False

        if delivered:
            self.metrics.relayed_messages_total.add(1, {"type": message.type})
        else:
            self.metrics.dropped_messages_total.add(1, {"type": message.type})
        return delivered

    async def broadcast(
        self,
        connection_ids: Iterable[str],
        message: WireModel,
        exclude_connection_id: str | None = None,
    ) -> int:
        """여러 연결에게 전송"""
        return await self.connections.broadcast(
            connection_ids,
            message.to_wire(),
            exclude_connection_id=exclude_connection_id,
        )
