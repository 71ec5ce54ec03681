"""
Capture devices for answer recording.

A device hands out one ``CaptureStream`` at a time. The stream yields
``MediaFrame`` objects carrying a chunk of the combined camera track and a
chunk of the microphone track captured at the same instant.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol
import asyncio
import logging

from core.exceptions import CaptureDeviceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaFrame:
    """One captured instant. Either payload may be empty for a given frame."""

    timestamp: float
    video: Optional[bytes] = None
    audio: Optional[bytes] = None


class CaptureStream(Protocol):
    def __aiter__(self) -> AsyncIterator[MediaFrame]: ...

    async def release(self) -> None: ...


class CaptureDevice(Protocol):
    async def acquire(self) -> CaptureStream:
        """
        Open the camera and microphone.

        Raises:
            CaptureDeviceError: The device is unavailable or already in use
        """
        ...


_END = object()


class QueueCaptureStream:
    """Stream backed by an ``asyncio.Queue`` that a transport pushes frames into."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.released = False

    async def put(self, frame: MediaFrame) -> None:
        if self.released:
            raise CaptureDeviceError("Capture stream has been released")
        await self._queue.put(frame)

    def end(self) -> None:
        """Signal end of input; iteration stops after queued frames are drained."""
        self._queue.put_nowait(_END)

    async def release(self) -> None:
        if not self.released:
            self.released = True
            self.end()

    async def __aiter__(self) -> AsyncIterator[MediaFrame]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item


class QueueCaptureDevice:
    """
    In-process capture device fed by the WebSocket capture endpoint.

    The browser owns the real camera; it streams chunks over the socket and
    the endpoint pushes them here as frames.
    """

    def __init__(self):
        self._stream: Optional[QueueCaptureStream] = None
        self._unavailable_reason: Optional[str] = None

    def mark_unavailable(self, reason: str) -> None:
        """Client reported that permission was denied or no device exists."""
        self._unavailable_reason = reason

    def mark_available(self) -> None:
        self._unavailable_reason = None

    async def acquire(self) -> QueueCaptureStream:
        if self._unavailable_reason:
            raise CaptureDeviceError(self._unavailable_reason)
        if self._stream is not None and not self._stream.released:
            raise CaptureDeviceError("Capture device is already in use")

        self._stream = QueueCaptureStream()
        logger.debug("Capture device acquired")
        return self._stream

    async def push(self, frame: MediaFrame) -> None:
        if self._stream is None or self._stream.released:
            raise CaptureDeviceError("Capture device has not been acquired")
        await self._stream.put(frame)

    def close(self) -> None:
        """End the current stream, e.g. when the socket disconnects."""
        if self._stream is not None and not self._stream.released:
            self._stream.end()
