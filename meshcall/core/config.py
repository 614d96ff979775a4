from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from meshcall.core.webrtc_config import (
    DEFAULT_ICE_SERVERS,
    RECONNECT_BACKOFF_FACTOR,
    RECONNECT_BASE_DELAY_SECONDS,
    RECONNECT_MAX_ATTEMPTS,
    RECONNECT_MAX_DELAY_SECONDS,
)


class Settings(BaseSettings):
    """애플리케이션 설정"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 앱 설정
    app_name: str = "meshcall signaling"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # 서버 바인딩 (python -m meshcall)
    host: str = "0.0.0.0"
    port: int = 5000

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # 룸 설정 (0이면 인원 제한 없음)
    max_participants: int = Field(default=0, ge=0)

    # ICE 서버
    ice_servers: list[dict[str, Any]] = Field(default_factory=lambda: list(DEFAULT_ICE_SERVERS))

    # 피어 재연결 정책
    reconnect_base_delay: float = Field(default=RECONNECT_BASE_DELAY_SECONDS, ge=0)
    reconnect_backoff_factor: float = Field(default=RECONNECT_BACKOFF_FACTOR, ge=1)
    reconnect_max_attempts: int = Field(default=RECONNECT_MAX_ATTEMPTS, ge=0)
    reconnect_max_delay: float = Field(default=RECONNECT_MAX_DELAY_SECONDS, ge=0)

    # OpenTelemetry (비어 있으면 metric export 비활성화)
    otlp_endpoint: str | None = None

    # 클라이언트 기본 시그널링 서버 주소
    signaling_url: str = "ws://localhost:5000/api/v1/ws"


@lru_cache
def get_settings() -> Settings:
    """설정 싱글톤 반환"""
    return Settings()
