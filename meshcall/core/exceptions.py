"""meshcall 에러 분류"""

from enum import Enum


class MeshcallError(Exception):
    """meshcall 기본 에러"""


class MediaErrorReason(str, Enum):
    """미디어 획득 실패 사유"""
    PERMISSION_DENIED = "permission-denied"
    DEVICE_NOT_FOUND = "device-not-found"
    OTHER = "other"


class MediaAcquisitionError(MeshcallError):
    """카메라/마이크 획득 실패 (사용자에게 노출, 자동 재시도 없음)"""

    def __init__(self, reason: MediaErrorReason, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"Media acquisition failed ({reason.value}): {detail}")

    @property
    def user_message(self) -> str:
        """사용자 안내 문구"""
        message = "Camera access failed. "
        if self.reason == MediaErrorReason.PERMISSION_DENIED:
            return message + "Please allow camera and microphone access."
        if self.reason == MediaErrorReason.DEVICE_NOT_FOUND:
            return message + "No camera or microphone found."
        return message + self.detail


class SignalingRouteError(MeshcallError):
    """대상 연결을 찾을 수 없음 (릴레이에서 조용히 폐기)"""

    def __init__(self, target_id: str):
        self.target_id = target_id
        super().__init__(f"Signaling target not found: {target_id}")


class NegotiationError(MeshcallError):
    """잘못되었거나 순서가 맞지 않는 description/candidate"""


class TransportFailure(MeshcallError):
    """피어 링크 전송 계층 실패 (disconnected/failed)"""

    def __init__(self, remote_id: str, state: str):
        self.remote_id = remote_id
        self.state = state
        super().__init__(f"Transport to {remote_id} is {state}")


class InvalidStateTransition(MeshcallError):
    """허용되지 않은 연결 상태 전이"""


class RoomFullError(MeshcallError):
    """룸 정원 초과"""

    def __init__(self, room_id: str, max_participants: int):
        self.room_id = room_id
        self.max_participants = max_participants
        super().__init__(f"Room {room_id} is full ({max_participants} participants)")
