"""WebRTC 관련 설정"""

# ICE 서버 설정 (STUN만 사용)
# TURN 서버 없이 동작하므로 Symmetric NAT 환경에서는 P2P 연결 실패 가능
DEFAULT_ICE_SERVERS = [
    {"urls": "stun:stun.l.google.com:19302"},
    {"urls": "stun:stun1.l.google.com:19302"},
    {"urls": "stun:stun2.l.google.com:19302"},
]

# 재연결 정책 기본값 (고정 3초 후 1회 재시도)
RECONNECT_BASE_DELAY_SECONDS = 3.0
RECONNECT_BACKOFF_FACTOR = 2.0
RECONNECT_MAX_ATTEMPTS = 1
RECONNECT_MAX_DELAY_SECONDS = 30.0

# 발신자 이름을 찾을 수 없을 때 사용하는 이름
UNKNOWN_USER_NAME = "Unknown"


# WebSocket 종료 코드
class WSErrorCode:
    """WebSocket 에러 코드"""
    SERVER_SHUTDOWN = 1001
    INTERNAL_ERROR = 4500
