"""WebSocket 시그널링 서비스 - 연결 관리 및 전송"""

import logging
import uuid
from collections.abc import Iterable

from fastapi import WebSocket

from meshcall.core.exceptions import SignalingRouteError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """connection ID별 WebSocket 연결 관리

    한 연결의 전송 실패는 해당 연결만 정리하고 다른 연결에는 영향을 주지 않는다.
    """

    def __init__(self):
        # connection_id -> WebSocket
        self._connections: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """WebSocket 연결 수락 및 connection ID 발급"""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = websocket
        logger.info(f"Connection {connection_id} opened")
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        """WebSocket 연결 해제"""
        if self._connections.pop(connection_id, None) is not None:
            logger.info(f"Connection {connection_id} closed")

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    async def send_to(self, connection_id: str, message: dict) -> bool:
        """특정 연결에게 메시지 전송

        Returns:
            전송 성공 여부 (전송 중 예외가 나면 연결 정리 후 False)

        Raises:
            SignalingRouteError: 등록되지 않은 connection ID
        """
        websocket = self._connections.get(connection_id)
        if websocket is None:
            raise SignalingRouteError(connection_id)

        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send message to {connection_id}: {e}")
            self._connections.pop(connection_id, None)
            return False

    async def broadcast(
        self,
        connection_ids: Iterable[str],
        message: dict,
        exclude_connection_id: str | None = None,
    ) -> int:
        """여러 연결에게 메시지 전송 (특정 연결 제외 가능)

        Returns:
            전송에 성공한 연결 수
        """
        delivered = 0
        for connection_id in connection_ids:
            if connection_id == exclude_connection_id:
                continue
            try:
                if await self.send_to(connection_id, message):
                    delivered += 1
            except SignalingRouteError:
                logger.debug(f"Broadcast skipped unknown connection {connection_id}")
        return delivered

    def get_connection_count(self) -> int:
        """열린 연결 수 조회"""
        return len(self._connections)

    async def close_all_connections(self, code: int, reason: str = "Server shutting down") -> None:
        """모든 연결 종료"""
        for connection_id, websocket in list(self._connections.items()):
            try:
                await websocket.close(code=code, reason=reason)
            except Exception as e:
                logger.debug(f"Failed to close connection {connection_id}: {e}")
        self._connections.clear()
        logger.info("All signaling connections closed")
