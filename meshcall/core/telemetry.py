"""OpenTelemetry 계측 설정

시그널링 서버에서 사용하는 OTel 초기화 로직과 커스텀 메트릭을 제공합니다.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.semconv.resource import ResourceAttributes

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def init_telemetry(
    service_name: str,
    service_version: str,
    environment: str,
    otlp_endpoint: str,
) -> metrics.Meter:
    """OpenTelemetry MeterProvider 초기화

    Args:
        service_name: 서비스 이름 (예: "meshcall-signaling")
        service_version: 서비스 버전
        environment: 배포 환경 이름
        otlp_endpoint: OTLP 수신 엔드포인트

    Returns:
        Meter 인스턴스
    """
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

    resource = Resource.create(
        {
            ResourceAttributes.SERVICE_NAME: service_name,
            ResourceAttributes.SERVICE_VERSION: service_version,
            ResourceAttributes.DEPLOYMENT_ENVIRONMENT: environment,
        }
    )

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True),
        export_interval_millis=10000,  # 10초마다 export
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)

    logger.info(
        "Telemetry initialized: service=%s, endpoint=%s",
        service_name,
        otlp_endpoint,
    )
    return metrics.get_meter(service_name, service_version)


def instrument_fastapi(app: FastAPI) -> None:
    """FastAPI 자동 계측"""
    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception as e:
        logger.warning("Failed to instrument FastAPI: %s", e)


class SignalingMetrics:
    """시그널링 서버 커스텀 메트릭"""

    def __init__(self, meter: metrics.Meter):
        self.active_connections = meter.create_up_down_counter(
            name="meshcall_active_connections",
            description="현재 열린 시그널링 WebSocket 수",
        )
        self.room_joins_total = meter.create_counter(
            name="meshcall_room_joins_total",
            description="룸 입장 수",
        )
        self.room_leaves_total = meter.create_counter(
            name="meshcall_room_leaves_total",
            description="룸 퇴장 수",
        )
        self.relayed_messages_total = meter.create_counter(
            name="meshcall_relayed_messages_total",
            description="대상에게 전달된 시그널링 메시지 수",
        )
        self.dropped_messages_total = meter.create_counter(
            name="meshcall_dropped_messages_total",
            description="대상 없음으로 폐기된 시그널링 메시지 수",
        )


_meter: metrics.Meter | None = None


def get_meter() -> metrics.Meter:
    """Meter 인스턴스 반환 (초기화 안 된 경우 noop meter 반환)"""
    if _meter is None:
        return metrics.get_meter("meshcall-noop")
    return _meter


def setup_telemetry(
    service_name: str,
    service_version: str,
    environment: str,
    otlp_endpoint: str | None,
) -> None:
    """전역 telemetry 설정 (애플리케이션 시작 시 호출)"""
    global _meter

    if not otlp_endpoint:
        logger.info("OTLP endpoint not configured, metrics export disabled")
        return
    if _meter is not None:
        logger.warning("Telemetry already initialized, skipping")
        return

    _meter = init_telemetry(service_name, service_version, environment, otlp_endpoint)
