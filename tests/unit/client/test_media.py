"""로컬 미디어 / aiortc 미디어 소스 단위 테스트"""

from unittest.mock import MagicMock, patch

import pytest

from meshcall.client.media import LocalMedia
from meshcall.client.webrtc.media import AiortcMediaSource, ToggleableTrack
from meshcall.core.exceptions import MediaAcquisitionError, MediaErrorReason


# ===== LocalMedia 테스트 =====


def test_local_media_toggles_track_state(fake_track):
    media = LocalMedia(video_track=fake_track("video"), audio_track=fake_track("audio"))

    media.set_video_enabled(False)
    media.set_audio_enabled(False)

    assert media.video_enabled is False
    assert media.video_track.enabled is False
    assert media.audio_track.enabled is False


def test_local_media_without_audio(fake_track):
    media = LocalMedia(video_track=fake_track("video"))

    media.set_audio_enabled(False)
    media.stop()

    assert media.tracks == [media.video_track]
    assert media.video_track.stopped


# ===== AiortcMediaSource 테스트 =====


def _player(video=True, audio=True) -> MagicMock:
    player = MagicMock()
    player.video = MagicMock(kind="video") if video else None
    player.audio = MagicMock(kind="audio") if audio else None
    return player


@pytest.mark.asyncio
async def test_acquire_wraps_tracks():
    with patch("meshcall.client.webrtc.media.MediaPlayer", return_value=_player()):
        media = await AiortcMediaSource().acquire()

    assert isinstance(media.video_track, ToggleableTrack)
    assert isinstance(media.audio_track, ToggleableTrack)
    assert media.video_track.kind == "video"
    assert media.audio_track.kind == "audio"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, reason",
    [
        (PermissionError("denied"), MediaErrorReason.PERMISSION_DENIED),
        (FileNotFoundError("/dev/video0"), MediaErrorReason.DEVICE_NOT_FOUND),
        (OSError("busy"), MediaErrorReason.OTHER),
    ],
)
async def test_acquire_maps_device_errors(error, reason):
    with patch("meshcall.client.webrtc.media.MediaPlayer", side_effect=error):
        with pytest.raises(MediaAcquisitionError) as exc_info:
            await AiortcMediaSource().acquire()

    assert exc_info.value.reason == reason


@pytest.mark.asyncio
async def test_acquire_without_video_stream():
    with patch("meshcall.client.webrtc.media.MediaPlayer", return_value=_player(video=False)):
        with pytest.raises(MediaAcquisitionError) as exc_info:
            await AiortcMediaSource(audio_device=None).acquire()

    assert exc_info.value.reason == MediaErrorReason.DEVICE_NOT_FOUND


@pytest.mark.asyncio
async def test_audio_failure_stops_video():
    """마이크 실패 시 이미 연 카메라를 닫음"""
    video_player = _player(audio=False)

    with patch(
        "meshcall.client.webrtc.media.MediaPlayer",
        side_effect=[video_player, PermissionError("mic denied")],
    ):
        with pytest.raises(MediaAcquisitionError):
            await AiortcMediaSource().acquire()

    video_player.video.stop.assert_called_once()
