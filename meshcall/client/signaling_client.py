"""websockets 기반 시그널링 클라이언트"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from meshcall.client.room_coordinator import RoomCoordinator
from meshcall.schemas.signaling import WireModel

logger = logging.getLogger(__name__)


class WebSocketSignalingClient:
    """시그널링 서버 WebSocket 연결 (SignalingChannel 구현)"""

    def __init__(self, url: str):
        self.url = url
        self._ws = None

    async def connect(self) -> None:
        self._ws = await websockets.connect(self.url)
        logger.info(f"Connected to signaling server {self.url}")

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None

    async def __aenter__(self) -> "WebSocketSignalingClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def send(self, message: WireModel) -> None:
        """메시지 전송

        Raises:
            ConnectionError: 연결되지 않았거나 이미 닫힌 경우
        """
        if self._ws is None:
            raise ConnectionError("Signaling channel is not connected")
        try:
            await self._ws.send(json.dumps(message.to_wire()))
        except ConnectionClosed as e:
            raise ConnectionError(f"Signaling channel closed: {e}") from e

    async def messages(self) -> AsyncIterator[dict[str, Any]]:
        """수신 메시지 iterator (정상 종료 시 끝남)

        Raises:
            ConnectionError: 연결이 비정상 종료된 경우
        """
        if self._ws is None:
            raise ConnectionError("Signaling channel is not connected")
        try:
            async for raw in self._ws:
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Invalid JSON from signaling server")
                    continue
                if isinstance(data, dict):
                    yield data
        except ConnectionClosedOK:
            return
        except ConnectionClosed as e:
            raise ConnectionError(f"Signaling channel closed: {e}") from e


async def run_room_session(
    client: WebSocketSignalingClient,
    coordinator: RoomCoordinator,
    room_id: str,
    user_name: str,
) -> None:
    """룸 입장 후 서버 메시지를 coordinator로 전달 (취소 또는 연결 종료 시 퇴장)"""
    await coordinator.join(room_id, user_name)
    try:
        async for data in client.messages():
            await coordinator.handle_message(data)
    except asyncio.CancelledError:
        logger.info("Room session cancelled")
        raise
    finally:
        await coordinator.leave()
