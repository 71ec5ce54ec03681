"""Answer capture: devices and the two-encoder response recorder."""

from core.capture.devices import (
    CaptureDevice,
    CaptureStream,
    MediaFrame,
    QueueCaptureDevice,
    QueueCaptureStream,
)
from core.capture.recorder import (
    DEFAULT_LANGUAGE,
    SUPPORTED_LANGUAGES,
    EncodedBlob,
    Recording,
    RecorderStatus,
    ResponseRecorder,
)

__all__ = [
    "CaptureDevice",
    "CaptureStream",
    "MediaFrame",
    "QueueCaptureDevice",
    "QueueCaptureStream",
    "DEFAULT_LANGUAGE",
    "SUPPORTED_LANGUAGES",
    "EncodedBlob",
    "Recording",
    "RecorderStatus",
    "ResponseRecorder",
]
