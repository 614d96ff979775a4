"""시그널링 서버 실행

사용법:
    python -m meshcall
    HOST=127.0.0.1 PORT=8000 python -m meshcall
"""

import logging

import uvicorn

from meshcall.core.config import get_settings

logger = logging.getLogger("meshcall")


def main() -> None:
    settings = get_settings()
    logger.info(f"Starting signaling server on {settings.host}:{settings.port}")
    uvicorn.run(
        "meshcall.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
