"""로컬 미디어 상태"""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class LocalMedia:
    """획득한 로컬 트랙과 on/off 상태

    트랙은 `enabled` 속성과 `stop()`을 가진 객체라고 가정한다.
    """
    video_track: Any | None = None
    audio_track: Any | None = None
    video_enabled: bool = True
    audio_enabled: bool = True

    @property
    def tracks(self) -> list[Any]:
        return [t for t in (self.video_track, self.audio_track) if t is not None]

    def set_video_enabled(self, enabled: bool) -> None:
        self.video_enabled = enabled
        if self.video_track is not None:
            self.video_track.enabled = enabled

    def set_audio_enabled(self, enabled: bool) -> None:
        self.audio_enabled = enabled
        if self.audio_track is not None:
            self.audio_track.enabled = enabled

    def stop(self) -> None:
        """모든 로컬 트랙 중지"""
        for track in self.tracks:
            track.stop()
        logger.info("Local media stopped")
