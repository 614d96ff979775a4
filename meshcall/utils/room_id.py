"""룸 ID 유틸리티"""

import secrets
import string

ROOM_ID_ALPHABET = string.digits + string.ascii_uppercase
ROOM_ID_LENGTH = 6


def normalize_room_id(room_id: str) -> str:
    """룸 ID 정규화 (앞뒤 공백 제거 후 대문자)

    Raises:
        ValueError: 정규화 결과가 빈 문자열인 경우
    """
    normalized = room_id.strip().upper()
    if not normalized:
        raise ValueError("Room ID must not be empty")
    return normalized


def generate_room_id(length: int = ROOM_ID_LENGTH) -> str:
    """공유용 랜덤 룸 ID 생성 (예: "K3F9QZ")"""
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(length))
