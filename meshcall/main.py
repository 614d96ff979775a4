import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meshcall import __version__
from meshcall.api.v1.router import api_router
from meshcall.core.config import Settings, get_settings
from meshcall.core.telemetry import SignalingMetrics, get_meter, instrument_fastapi, setup_telemetry
from meshcall.core.webrtc_config import WSErrorCode
from meshcall.services.room_store import InMemoryRoomStore
from meshcall.services.signaling_relay import SignalingRelay
from meshcall.services.signaling_service import ConnectionManager

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 라이프사이클"""
    settings: Settings = app.state.settings

    # 시작 시: Telemetry 초기화 후 릴레이 생성
    setup_telemetry("meshcall-signaling", __version__, settings.environment, settings.otlp_endpoint)
    app.state.relay = SignalingRelay(
        store=InMemoryRoomStore(max_participants=settings.max_participants),
        connections=ConnectionManager(),
        metrics=SignalingMetrics(get_meter()),
    )
    logger.info(f"Signaling server started (environment={settings.environment})")
    yield
    # 종료 시: 열린 WebSocket 정리
    await app.state.relay.connections.close_all_connections(WSErrorCode.SERVER_SHUTDOWN)


def create_app(settings: Settings | None = None) -> FastAPI:
    """FastAPI 애플리케이션 생성"""
    settings = settings or get_settings()
    logging.getLogger("meshcall").setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="meshcall - Room signaling for peer-to-peer video calls",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # OpenTelemetry FastAPI 계측
    instrument_fastapi(app)

    # CORS 설정
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API 라우터 등록
    app.include_router(api_router)

    @app.get("/health")
    async def health_check() -> dict:
        """헬스 체크"""
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.environment,
        }

    return app


app = create_app()
