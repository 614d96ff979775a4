"""설정 / 에러 / 메트릭 단위 테스트"""

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from meshcall.core.config import Settings
from meshcall.core.exceptions import MediaAcquisitionError, MediaErrorReason, MeshcallError, RoomFullError
from meshcall.core.telemetry import SignalingMetrics, get_meter, setup_telemetry


# ===== Settings 테스트 =====


def test_settings_defaults():
    """기본값: STUN 3개, 3초 1회 재연결, 인원 제한 없음"""
    settings = Settings(_env_file=None)

    assert len(settings.ice_servers) == 3
    assert all(s["urls"].startswith("stun:") for s in settings.ice_servers)
    assert settings.reconnect_base_delay == 3.0
    assert settings.reconnect_max_attempts == 1
    assert settings.max_participants == 0
    assert settings.otlp_endpoint is None


def test_settings_from_env(monkeypatch):
    """환경변수로 설정 (대소문자 무시)"""
    monkeypatch.setenv("MAX_PARTICIPANTS", "8")
    monkeypatch.setenv("environment", "production")

    settings = Settings(_env_file=None)

    assert settings.max_participants == 8
    assert settings.environment == "production"


def test_settings_from_fixture(test_settings: Settings):
    assert test_settings.environment == "test"
    assert test_settings.debug is True
    assert test_settings.reconnect_base_delay == 0.01


def test_settings_rejects_negative_capacity():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, max_participants=-1)


# ===== 에러 테스트 =====


def test_media_error_user_messages():
    """미디어 실패 사유별 안내 문구"""
    denied = MediaAcquisitionError(MediaErrorReason.PERMISSION_DENIED)
    missing = MediaAcquisitionError(MediaErrorReason.DEVICE_NOT_FOUND)
    other = MediaAcquisitionError(MediaErrorReason.OTHER, "device busy")

    assert denied.user_message == "Camera access failed. Please allow camera and microphone access."
    assert missing.user_message == "Camera access failed. No camera or microphone found."
    assert other.user_message == "Camera access failed. device busy"
    assert isinstance(denied, MeshcallError)


def test_room_full_error_message():
    error = RoomFullError("ROOM1", 4)
    assert "ROOM1" in str(error)
    assert error.max_participants == 4


# ===== Telemetry 테스트 =====


def test_signaling_metrics_instruments():
    meter = MagicMock()

    SignalingMetrics(meter)

    meter.create_up_down_counter.assert_called_once()
    assert meter.create_counter.call_count == 4


def test_setup_telemetry_without_endpoint_keeps_noop_meter():
    setup_telemetry("meshcall-test", "0.0.0", "test", None)

    metrics = SignalingMetrics(get_meter())
    metrics.relayed_messages_total.add(1, {"type": "offer"})


# ===== 서버 실행 테스트 =====


def test_main_runs_uvicorn_with_settings(monkeypatch):
    from meshcall import __main__ as entrypoint

    settings = Settings(_env_file=None, host="127.0.0.1", port=8123, log_level="WARNING")
    monkeypatch.setattr(entrypoint, "get_settings", lambda: settings)
    run = MagicMock()
    monkeypatch.setattr(entrypoint.uvicorn, "run", run)

    entrypoint.main()

    run.assert_called_once_with(
        "meshcall.main:app",
        host="127.0.0.1",
        port=8123,
        log_level="warning",
        reload=False,
    )
