"""WebSocket 시그널링 엔드포인트"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from meshcall.api.dependencies import RelayDep
from meshcall.core.webrtc_config import WSErrorCode

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Signaling"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, relay: RelayDep):
    """WebSocket 시그널링 엔드포인트

    연결마다 connection ID를 발급하고, 종료 시 룸 퇴장까지 처리한다.
    한 연결의 예외는 해당 연결만 종료시킨다.
    """
    connection_id = await relay.connect(websocket)

    try:
        # 메시지 처리 루프
        while True:
            text = await websocket.receive_text()
            await relay.handle_text(connection_id, text)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: connection={connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error on {connection_id}: {e}", exc_info=True)
        try:
            await websocket.close(code=WSErrorCode.INTERNAL_ERROR, reason="Internal error")
        except RuntimeError:
            # 이미 닫힌 소켓
            pass
    finally:
        await relay.disconnect(connection_id)
