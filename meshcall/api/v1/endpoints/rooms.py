"""룸 조회/생성 및 ICE 설정 엔드포인트"""

from fastapi import APIRouter, HTTPException, status

from meshcall.api.dependencies import RelayDep, SettingsDep
from meshcall.schemas.signaling import IceServer, RoomInfoMessage
from meshcall.utils.room_id import generate_room_id

router = APIRouter(tags=["Rooms"])

# 새로 생성한 룸 ID가 이미 사용 중일 때 재시도 횟수
_ROOM_ID_ATTEMPTS = 10


@router.get("/rooms/{room_id}")
async def get_room(room_id: str, relay: RelayDep) -> dict:
    """룸 스냅샷 조회 (room-info 메시지와 같은 형태)"""
    snapshot = relay.store.snapshot(room_id)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "NOT_FOUND", "message": f"Room {room_id} not found"},
        )
    return RoomInfoMessage.from_snapshot(snapshot).to_wire()


@router.post("/rooms", status_code=status.HTTP_201_CREATED)
async def create_room_id(relay: RelayDep) -> dict:
    """공유용 새 룸 ID 발급 (룸은 첫 입장 시 생성된다)"""
    for _ in range(_ROOM_ID_ATTEMPTS):
        room_id = generate_room_id()
        if not relay.store.has_room(room_id):
            return {"roomId": room_id}

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"error": "UNAVAILABLE", "message": "Could not allocate a room ID"},
    )


@router.get("/ice-servers", response_model=list[IceServer], response_model_exclude_none=True)
async def get_ice_servers(settings: SettingsDep):
    """클라이언트가 사용할 ICE 서버 목록"""
    return [IceServer(**server) for server in settings.ice_servers]
