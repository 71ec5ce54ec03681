"""
Response recorder.

Produces two independently encoded blobs from a single capture device: the
combined video+audio recording used for playback and an audio-only recording
used for transcription. One producer task reads the device stream and fans
every frame out to two channels; one sink task per channel encodes what it
receives. ``start()`` and ``stop()`` drive both sinks together so the two
blobs always cover the same interval.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
import asyncio
import logging
import time

from core.capture.devices import CaptureDevice, CaptureStream, MediaFrame
from core.config import settings
from core.exceptions import CaptureDeviceError, RecordingStateError

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "it": "Italian",
    "nl": "Dutch",
    "hi": "Hindi",
    "ar": "Arabic",
    "zh": "Chinese",
    "ja": "Japanese",
}


class RecorderStatus(str, Enum):
    IDLE = "idle"
    READY = "ready"
    RECORDING = "recording"
    STOPPED = "stopped"


class Track(str, Enum):
    AUDIO_VIDEO = "audio_video"
    AUDIO = "audio"


@dataclass(frozen=True)
class EncodedBlob:
    data: bytes
    content_type: str
    started_at: float
    stopped_at: float

    @property
    def duration_seconds(self) -> float:
        return self.stopped_at - self.started_at


@dataclass(frozen=True)
class Recording:
    """A finished answer, ready to submit."""

    video: bytes
    video_content_type: str = "video/webm"
    audio: Optional[bytes] = None
    audio_content_type: str = "audio/webm"
    language: str = DEFAULT_LANGUAGE
    duration_seconds: Optional[float] = None

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)


class ChunkEncoder:
    """
    Sink for one channel.

    Encoders are container-agnostic: the browser already emits encoded
    chunks, so encoding here means concatenating the payloads of the
    subscribed track in arrival order.
    """

    def __init__(self, track: Track, content_type: str):
        self.track = track
        self.content_type = content_type
        self._chunks: list[bytes] = []

    def reset(self) -> None:
        self._chunks = []

    def write(self, frame: MediaFrame) -> None:
        chunk = frame.video if self.track == Track.AUDIO_VIDEO else frame.audio
        if chunk:
            self._chunks.append(chunk)

    async def run(self, channel: asyncio.Queue) -> None:
        while True:
            frame = await channel.get()
            if frame is None:
                return
            self.write(frame)

    def finish(self, started_at: float, stopped_at: float) -> EncodedBlob:
        return EncodedBlob(
            data=b"".join(self._chunks),
            content_type=self.content_type,
            started_at=started_at,
            stopped_at=stopped_at,
        )


class ResponseRecorder:
    """
    Records one answer at a time from a capture device.

    Device acquisition failures never propagate: they are stored in
    ``last_error`` and the recorder stays ``idle`` so acquisition can be
    retried.
    """

    def __init__(
        self,
        device: CaptureDevice,
        language: str = DEFAULT_LANGUAGE,
        max_duration_seconds: Optional[float] = None,
        video_content_type: str = "video/webm",
        audio_content_type: str = "audio/webm",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.device = device
        self.max_duration_seconds = (
            max_duration_seconds
            if max_duration_seconds is not None
            else settings.recording_max_duration_seconds
        )
        self.clock = clock
        self.status = RecorderStatus.IDLE
        self.last_error: Optional[str] = None
        self._language = DEFAULT_LANGUAGE
        self.language = language

        self._video_encoder = ChunkEncoder(Track.AUDIO_VIDEO, video_content_type)
        self._audio_encoder = ChunkEncoder(Track.AUDIO, audio_content_type)
        self._stream: Optional[CaptureStream] = None
        self._producer: Optional[asyncio.Task] = None
        self._channels: Optional[tuple[asyncio.Queue, asyncio.Queue]] = None
        self._sinks: list[asyncio.Task] = []
        self._auto_stop: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._started_at: Optional[float] = None
        self._video: Optional[EncodedBlob] = None
        self._audio: Optional[EncodedBlob] = None

    # ==================== Properties ==================== #
    @property
    def language(self) -> str:
        return self._language

    @language.setter
    def language(self, value: str) -> None:
        if self.status == RecorderStatus.RECORDING:
            raise RecordingStateError("Language cannot be changed while recording")
        if value not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {value}")
        self._language = value

    @property
    def video_blob(self) -> Optional[EncodedBlob]:
        return self._video

    @property
    def audio_blob(self) -> Optional[EncodedBlob]:
        return self._audio

    # ==================== Device ==================== #
    async def acquire(self) -> bool:
        """
        Acquire the capture device and start the producer.

        Returns:
            True if the device is ready, False if acquisition failed
        """
        if self.status != RecorderStatus.IDLE:
            return True

        try:
            self._stream = await self.device.acquire()
        except CaptureDeviceError as e:
            self.last_error = e.message
            logger.warning(f"Capture device unavailable: {e.message}")
            return False

        self.last_error = None
        self._producer = asyncio.create_task(self._produce(self._stream))
        self.status = RecorderStatus.READY
        return True

    async def release(self) -> None:
        """Stop any recording and give the device back."""
        await self._stop_if_recording()

        if self._stream is not None:
            await self._stream.release()
        if self._producer is not None:
            await self._producer
        self._stream = None
        self._producer = None
        self.status = RecorderStatus.IDLE

    async def _produce(self, stream: CaptureStream) -> None:
        async for frame in stream:
            channels = self._channels
            if channels is None:
                # Preview frames outside a recording are dropped
                continue
            video_channel, audio_channel = channels
            video_channel.put_nowait(frame)
            audio_channel.put_nowait(MediaFrame(timestamp=frame.timestamp, audio=frame.audio))

        if await self._stop_if_recording():
            logger.info("Capture stream ended during recording; stopped")

    # ==================== Recording ==================== #
    async def start(self) -> None:
        """Start both encoders at the same instant."""
        async with self._lock:
            if self.status != RecorderStatus.READY:
                raise RecordingStateError(f"Cannot start recording while {self.status.value}")

            self._video_encoder.reset()
            self._audio_encoder.reset()
            self._video = None
            self._audio = None

            video_channel: asyncio.Queue = asyncio.Queue()
            audio_channel: asyncio.Queue = asyncio.Queue()
            self._sinks = [
                asyncio.create_task(self._video_encoder.run(video_channel)),
                asyncio.create_task(self._audio_encoder.run(audio_channel)),
            ]
            self._started_at = self.clock()
            self._channels = (video_channel, audio_channel)
            self.status = RecorderStatus.RECORDING

            if self.max_duration_seconds:
                self._auto_stop = asyncio.create_task(
                    self._stop_after(self.max_duration_seconds)
                )

        logger.debug("Recording started")

    async def stop(self) -> None:
        """Stop both encoders at the same instant and collect the blobs."""
        async with self._lock:
            if self.status != RecorderStatus.RECORDING:
                raise RecordingStateError(f"Cannot stop recording while {self.status.value}")
            await self._finish_recording()

        logger.debug(f"Recording stopped after {self._video.duration_seconds:.1f}s")

    async def _stop_if_recording(self) -> bool:
        """Stop from the producer or the auto-stop timer. False if already stopped."""
        async with self._lock:
            if self.status != RecorderStatus.RECORDING:
                return False
            await self._finish_recording()
        return True

    async def _finish_recording(self) -> None:
        """Close both channels and collect the blobs. Caller holds the lock."""
        channels = self._channels
        self._channels = None
        stopped_at = self.clock()
        for channel in channels:
            channel.put_nowait(None)
        await asyncio.gather(*self._sinks)
        self._sinks = []

        self._video = self._video_encoder.finish(self._started_at, stopped_at)
        self._audio = self._audio_encoder.finish(self._started_at, stopped_at)
        self.status = RecorderStatus.STOPPED

        if self._auto_stop is not None and self._auto_stop is not asyncio.current_task():
            self._auto_stop.cancel()
        self._auto_stop = None

    async def _stop_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        if await self._stop_if_recording():
            logger.info(f"Maximum recording duration of {seconds}s reached")

    # ==================== Actions ==================== #
    def accept(self) -> Recording:
        """Hand the finished blobs over for submission."""
        if self.status != RecorderStatus.STOPPED or self._video is None:
            raise RecordingStateError("There is no finished recording to submit")

        return Recording(
            video=self._video.data,
            video_content_type=self._video.content_type,
            audio=self._audio.data if self._audio else None,
            audio_content_type=self._audio_encoder.content_type,
            language=self.language,
            duration_seconds=self._video.duration_seconds,
        )

    async def discard_and_rerecord(self) -> bool:
        """
        Throw away the current blobs and re-acquire the device.

        Returns:
            True if the device is ready for a new take
        """
        await self.release()
        self._video = None
        self._audio = None
        self._video_encoder.reset()
        self._audio_encoder.reset()
        return await self.acquire()

    def replace_with_upload(self, data: bytes, content_type: str) -> Recording:
        """Use a pre-recorded file instead of a live take. No audio track is split out."""
        if self.status == RecorderStatus.RECORDING:
            raise RecordingStateError("Stop recording before uploading a file")

        return Recording(
            video=data,
            video_content_type=content_type or "video/webm",
            audio=None,
            language=self.language,
        )
