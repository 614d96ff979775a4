"""원격 트랙 소비 (MediaBlackhole / MediaRecorder)"""

import asyncio
import logging
import os
from typing import Any

from aiortc.contrib.media import MediaBlackhole, MediaRecorder

logger = logging.getLogger(__name__)


class MediaSinkSurface:
    """원격 참여자 렌더링 대상

    record_dir가 주어지면 트랙별로 파일에 녹화하고, 없으면 프레임을 버린다.
    """

    def __init__(self, remote_id: str, record_dir: str | None = None):
        self.remote_id = remote_id
        self.record_dir = record_dir
        self._sinks: list[MediaBlackhole | MediaRecorder] = []
        self._start_tasks: list[asyncio.Task] = []

    def attach(self, track: Any) -> None:
        if self.record_dir:
            path = os.path.join(self.record_dir, f"{self.remote_id}-{track.kind}.webm")
            sink = MediaRecorder(path, format="webm")
        else:
            sink = MediaBlackhole()
        sink.addTrack(track)
        self._sinks.append(sink)
        self._start_tasks.append(asyncio.get_running_loop().create_task(sink.start()))
        logger.debug(f"Attached {track.kind} track of {self.remote_id}")

    async def detach(self) -> None:
        if self._start_tasks:
            await asyncio.gather(*self._start_tasks)
        for sink in self._sinks:
            await sink.stop()
        self._sinks.clear()
        self._start_tasks.clear()
        logger.debug(f"Detached surface of {self.remote_id}")
