"""Tests for the dual-track response recorder."""

import asyncio

import pytest

from core.capture import (
    MediaFrame,
    QueueCaptureDevice,
    RecorderStatus,
    ResponseRecorder,
)
from core.exceptions import CaptureDeviceError, RecordingStateError


class StepClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


async def settle():
    """Let the producer and sink tasks drain their queues."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def device():
    return QueueCaptureDevice()


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def recorder(device, clock):
    return ResponseRecorder(device, clock=clock, max_duration_seconds=0)


class TestAcquisition:

    @pytest.mark.asyncio
    async def test_failure_leaves_recorder_idle(self, device, recorder):
        device.mark_unavailable("Permission denied")

        assert await recorder.acquire() is False
        assert recorder.status == RecorderStatus.IDLE
        assert recorder.last_error == "Permission denied"

        device.mark_available()
        assert await recorder.acquire() is True
        assert recorder.status == RecorderStatus.READY
        assert recorder.last_error is None
        await recorder.release()

    @pytest.mark.asyncio
    async def test_device_cannot_be_acquired_twice(self, device):
        await device.acquire()
        with pytest.raises(CaptureDeviceError):
            await device.acquire()

    @pytest.mark.asyncio
    async def test_start_requires_ready(self, recorder):
        with pytest.raises(RecordingStateError):
            await recorder.start()


class TestRecording:

    @pytest.mark.asyncio
    async def test_both_blobs_cover_the_same_interval(self, device, recorder, clock):
        await recorder.acquire()
        await device.push(MediaFrame(timestamp=0, video=b"preview"))
        await settle()

        await recorder.start()
        await device.push(MediaFrame(timestamp=1, video=b"V1", audio=b"A1"))
        await device.push(MediaFrame(timestamp=2, video=b"V2"))
        await device.push(MediaFrame(timestamp=3, audio=b"A2"))
        await settle()
        clock.now = 142.5
        await recorder.stop()

        video, audio = recorder.video_blob, recorder.audio_blob
        assert video.data == b"V1V2"
        assert audio.data == b"A1A2"
        assert video.duration_seconds == audio.duration_seconds == 42.5
        assert video.started_at == audio.started_at
        assert recorder.status == RecorderStatus.STOPPED
        await recorder.release()

    @pytest.mark.asyncio
    async def test_accept_returns_recording(self, device, recorder):
        await recorder.acquire()
        recorder.language = "es"
        await recorder.start()
        await device.push(MediaFrame(timestamp=1, video=b"V", audio=b"A"))
        await settle()
        await recorder.stop()

        recording = recorder.accept()
        assert recording.video == b"V"
        assert recording.audio == b"A"
        assert recording.has_audio
        assert recording.language == "es"
        assert recording.video_content_type == "video/webm"
        await recorder.release()

    @pytest.mark.asyncio
    async def test_accept_without_recording(self, recorder):
        with pytest.raises(RecordingStateError):
            recorder.accept()

    @pytest.mark.asyncio
    async def test_stream_end_stops_recording(self, device, recorder):
        await recorder.acquire()
        await recorder.start()
        await device.push(MediaFrame(timestamp=1, video=b"V", audio=b"A"))
        device.close()
        await settle()

        assert recorder.status == RecorderStatus.STOPPED
        assert recorder.video_blob.data == b"V"
        await recorder.release()

    @pytest.mark.asyncio
    async def test_playback_blob_is_the_camera_container_only(self, device, recorder):
        ebml = b"\x1aE\xdf\xa3"
        await recorder.acquire()
        await recorder.start()
        await device.push(MediaFrame(timestamp=1, video=ebml + b"video-header"))
        await device.push(MediaFrame(timestamp=1, audio=ebml + b"audio-header"))
        await device.push(MediaFrame(timestamp=2, video=b"video-cluster"))
        await settle()
        await recorder.stop()

        recording = recorder.accept()
        assert recording.video == ebml + b"video-header" + b"video-cluster"
        assert recording.video.count(ebml) == 1
        assert recording.audio == ebml + b"audio-header"
        await recorder.release()

    @pytest.mark.asyncio
    async def test_stop_racing_stream_end_does_not_raise(self, device, recorder):
        await recorder.acquire()
        await recorder.start()
        await device.push(MediaFrame(timestamp=1, video=b"V", audio=b"A"))
        await settle()
        device.close()
        await recorder.stop()

        await recorder.release()
        assert recorder.status == RecorderStatus.IDLE
        assert recorder.video_blob.data == b"V"

    @pytest.mark.asyncio
    async def test_release_after_disconnect_mid_recording(self, device, recorder):
        await recorder.acquire()
        await recorder.start()
        device.close()

        await recorder.release()
        assert recorder.status == RecorderStatus.IDLE
        assert recorder.video_blob is not None

    @pytest.mark.asyncio
    async def test_auto_stop_at_max_duration(self, device):
        recorder = ResponseRecorder(device, max_duration_seconds=0.01)
        await recorder.acquire()
        await recorder.start()
        await asyncio.sleep(0.05)

        assert recorder.status == RecorderStatus.STOPPED
        await recorder.release()

    @pytest.mark.asyncio
    async def test_discard_and_rerecord(self, device, recorder):
        await recorder.acquire()
        await recorder.start()
        await device.push(MediaFrame(timestamp=1, video=b"first", audio=b"take"))
        await settle()
        await recorder.stop()

        assert await recorder.discard_and_rerecord() is True
        assert recorder.status == RecorderStatus.READY
        assert recorder.video_blob is None

        await recorder.start()
        await device.push(MediaFrame(timestamp=2, video=b"second"))
        await settle()
        await recorder.stop()
        assert recorder.video_blob.data == b"second"
        assert recorder.audio_blob.data == b""
        await recorder.release()


class TestLanguage:

    @pytest.mark.asyncio
    async def test_locked_while_recording(self, recorder):
        await recorder.acquire()
        await recorder.start()

        with pytest.raises(RecordingStateError):
            recorder.language = "fr"
        await recorder.release()

    def test_unsupported_language(self, recorder):
        with pytest.raises(ValueError):
            recorder.language = "xx"
        assert recorder.language == "en"


class TestUploadReplacement:

    def test_replace_with_upload_has_no_audio(self, recorder):
        recording = recorder.replace_with_upload(b"mp4-bytes", "video/mp4")

        assert recording.video == b"mp4-bytes"
        assert recording.video_content_type == "video/mp4"
        assert not recording.has_audio

    @pytest.mark.asyncio
    async def test_not_while_recording(self, recorder):
        await recorder.acquire()
        await recorder.start()

        with pytest.raises(RecordingStateError):
            recorder.replace_with_upload(b"mp4-bytes", "video/mp4")
        await recorder.release()
