"""공유 API dependencies"""

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from meshcall.core.config import Settings
from meshcall.services.signaling_relay import SignalingRelay


def get_app_settings(connection: HTTPConnection) -> Settings:
    """애플리케이션 생성 시 주입된 설정"""
    return connection.app.state.settings


def get_signaling_relay(connection: HTTPConnection) -> SignalingRelay:
    """애플리케이션 단위 SignalingRelay 의존성 (HTTP/WebSocket 공용)"""
    return connection.app.state.relay


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
RelayDep = Annotated[SignalingRelay, Depends(get_signaling_relay)]
