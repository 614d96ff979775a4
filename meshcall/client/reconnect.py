"""피어 링크 재연결 정책"""

from dataclasses import dataclass

from meshcall.core.config import Settings
from meshcall.core.webrtc_config import (
    RECONNECT_BACKOFF_FACTOR,
    RECONNECT_BASE_DELAY_SECONDS,
    RECONNECT_MAX_ATTEMPTS,
    RECONNECT_MAX_DELAY_SECONDS,
)


@dataclass(frozen=True)
class ReconnectPolicy:
    """지수 backoff 재연결 정책

    기본값은 3초 후 1회 재구성이다.
    """
    base_delay: float = RECONNECT_BASE_DELAY_SECONDS
    backoff_factor: float = RECONNECT_BACKOFF_FACTOR
    max_attempts: int = RECONNECT_MAX_ATTEMPTS
    max_delay: float = RECONNECT_MAX_DELAY_SECONDS

    def __post_init__(self):
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Reconnect delays must not be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must not be negative")

    def delay_for(self, attempt: int) -> float:
        """attempt번째(1부터) 재시도 전 대기 시간(초)"""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)

    def allows(self, attempt: int) -> bool:
        """attempt번째 재시도가 예산 안에 있는지"""
        return 1 <= attempt <= self.max_attempts

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconnectPolicy":
        return cls(
            base_delay=settings.reconnect_base_delay,
            backoff_factor=settings.reconnect_backoff_factor,
            max_attempts=settings.reconnect_max_attempts,
            max_delay=settings.reconnect_max_delay,
        )
