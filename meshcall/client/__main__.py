"""aiortc 엔드포인트로 룸에 참여하는 스크립트

사용법:
    python -m meshcall.client --room K3F9QZ --name Alice
    python -m meshcall.client --room K3F9QZ --name Bot --video-device sample.mp4 --video-format "" --no-audio
"""

import argparse
import asyncio
import functools
import logging

from meshcall.client.interfaces import PeerLinkConfig
from meshcall.client.reconnect import ReconnectPolicy
from meshcall.client.room_coordinator import RoomCoordinator
from meshcall.client.signaling_client import WebSocketSignalingClient, run_room_session
from meshcall.client.webrtc import AiortcMediaSource, AiortcPeerLinkFactory, MediaSinkSurface
from meshcall.core.config import get_settings
from meshcall.core.exceptions import MediaAcquisitionError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("meshcall.client")


async def main(args: argparse.Namespace) -> None:
    settings = get_settings()

    media_source = AiortcMediaSource(
        args.video_device or None,
        None if args.no_audio else args.audio_device,
        video_format=args.video_format or None,
        audio_format=args.audio_format or None,
    )

    async with WebSocketSignalingClient(args.url or settings.signaling_url) as client:
        coordinator = RoomCoordinator(
            client,
            media_source,
            AiortcPeerLinkFactory(),
            functools.partial(MediaSinkSurface, record_dir=args.record_dir),
            link_config=PeerLinkConfig(ice_servers=settings.ice_servers),
            policy=ReconnectPolicy.from_settings(settings),
            on_status=lambda status: logger.info(f"[status] {status}"),
        )
        try:
            await run_room_session(client, coordinator, args.room, args.name)
        except MediaAcquisitionError as e:
            logger.error(e.user_message)
        except ConnectionError as e:
            logger.error(f"Signaling connection lost: {e}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="meshcall 룸 참여 클라이언트")
    parser.add_argument("--room", required=True, help="룸 ID")
    parser.add_argument("--name", required=True, help="표시 이름")
    parser.add_argument("--url", help="시그널링 서버 주소 (기본: SIGNALING_URL 설정)")
    parser.add_argument("--video-device", default="/dev/video0", help="카메라 장치 또는 미디어 파일")
    parser.add_argument("--video-format", default="v4l2", help="카메라 입력 포맷 (파일이면 빈 문자열)")
    parser.add_argument("--audio-device", default="default", help="마이크 장치")
    parser.add_argument("--audio-format", default="pulse", help="마이크 입력 포맷")
    parser.add_argument("--no-audio", action="store_true", help="마이크 사용 안 함")
    parser.add_argument("--record-dir", help="원격 트랙을 webm으로 저장할 디렉토리")

    try:
        asyncio.run(main(parser.parse_args()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
