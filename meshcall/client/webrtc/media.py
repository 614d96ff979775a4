"""aiortc MediaPlayer 기반 로컬 미디어 획득"""

import asyncio
import logging
from typing import Any

import av
from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer
from av import AudioFrame, VideoFrame

from meshcall.client.media import LocalMedia
from meshcall.core.exceptions import MediaAcquisitionError, MediaErrorReason

logger = logging.getLogger(__name__)


class ToggleableTrack(MediaStreamTrack):
    """enabled=False일 때 무음/빈 화면 프레임을 내보내는 트랙"""

    def __init__(self, source: MediaStreamTrack):
        super().__init__()
        self.kind = source.kind
        self.source = source
        self.enabled = True

    async def recv(self):
        frame = await self.source.recv()
        if self.enabled:
            return frame

        if isinstance(frame, VideoFrame):
            blank = VideoFrame(width=frame.width, height=frame.height)
        else:
            blank = AudioFrame(
                format=frame.format.name,
                layout=frame.layout.name,
                samples=frame.samples,
            )
            blank.sample_rate = frame.sample_rate
        for plane in blank.planes:
            plane.update(bytes(plane.buffer_size))
        blank.pts = frame.pts
        blank.time_base = frame.time_base
        return blank

    def stop(self) -> None:
        super().stop()
        self.source.stop()


class AiortcMediaSource:
    """카메라/마이크 장치 (또는 미디어 파일) 열기

    예: Linux는 video_device="/dev/video0", video_format="v4l2",
    audio_device="default", audio_format="pulse"
    """

    def __init__(
        self,
        video_device: str | None = "/dev/video0",
        audio_device: str | None = "default",
        *,
        video_format: str | None = "v4l2",
        audio_format: str | None = "pulse",
        video_options: dict[str, str] | None = None,
    ):
        self.video_device = video_device
        self.audio_device = audio_device
        self.video_format = video_format
        self.audio_format = audio_format
        self.video_options = video_options or {"framerate": "30", "video_size": "640x480"}

    async def acquire(self) -> LocalMedia:
        """장치를 열어 LocalMedia 반환

        Raises:
            MediaAcquisitionError: 권한 거부 / 장치 없음 / 기타 실패
        """
        video_track = None
        if self.video_device:
            player = await self._open(self.video_device, self.video_format, self.video_options)
            if player.video is None:
                raise MediaAcquisitionError(MediaErrorReason.DEVICE_NOT_FOUND, self.video_device)
            video_track = ToggleableTrack(player.video)

        audio_track = None
        if self.audio_device:
            try:
                player = await self._open(self.audio_device, self.audio_format, None)
            except MediaAcquisitionError:
                if video_track is not None:
                    video_track.stop()
                raise
            if player.audio is not None:
                audio_track = ToggleableTrack(player.audio)

        logger.info(
            f"Local media acquired: video={video_track is not None}, audio={audio_track is not None}"
        )
        return LocalMedia(video_track=video_track, audio_track=audio_track)

    @staticmethod
    async def _open(device: str, fmt: str | None, options: dict[str, Any] | None) -> MediaPlayer:
        # 장치 열기는 블로킹 호출
        try:
            return await asyncio.to_thread(MediaPlayer, device, format=fmt, options=options)
        except PermissionError as e:
            raise MediaAcquisitionError(MediaErrorReason.PERMISSION_DENIED, str(e)) from e
        except FileNotFoundError as e:
            raise MediaAcquisitionError(MediaErrorReason.DEVICE_NOT_FOUND, str(e)) from e
        except (av.error.FFmpegError, OSError) as e:
            raise MediaAcquisitionError(MediaErrorReason.OTHER, str(e)) from e
