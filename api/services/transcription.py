"""
Transcription service.

Accepts a recording either inline (base64) or as a storage key, enforces the
payload limit, asks the transcription agent for a transcript and optionally
stores it on the response row.
"""

from typing import Optional
import base64
import binascii
import logging

from agents.transcription.agent import TranscriptionAgent
from api.services.business_cases import BCQRepository
from core.config import settings
from core.exceptions import (
    EmptyTranscriptError,
    InvalidPayloadError,
    MediaNotFoundError,
    PayloadTooLargeError,
)
from core.storage.s3 import S3Storage, content_type_for

logger = logging.getLogger(__name__)


def decode_media(encoded: str) -> bytes:
    """Decode a base64 payload, accepting an optional ``data:`` URL prefix."""
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidPayloadError("Audio payload is not valid base64")


def check_payload_size(data: bytes, max_bytes: int) -> None:
    """Reject media strictly larger than ``max_bytes``; exactly the limit is allowed."""
    if len(data) > max_bytes:
        size_mb = len(data) / (1024 * 1024)
        limit_mb = max_bytes / (1024 * 1024)
        raise PayloadTooLargeError(
            f"Media is too large ({size_mb:.1f} MB). Maximum size is {limit_mb:.0f} MB."
        )


class TranscriptionService:
    def __init__(
        self,
        agent: TranscriptionAgent,
        repo: Optional[BCQRepository] = None,
        storage: Optional[S3Storage] = None,
        max_bytes: Optional[int] = None,
    ):
        self.agent = agent
        self.repo = repo
        self.storage = storage
        self.max_bytes = max_bytes if max_bytes is not None else settings.transcription_max_bytes

    async def transcribe(
        self,
        audio: Optional[str] = None,
        content_type: Optional[str] = None,
        video_path: Optional[str] = None,
        language: str = "en",
        response_id: Optional[str] = None,
    ) -> str:
        """
        Transcribe inline or stored media.

        A ``video_path`` takes precedence over inline ``audio``.

        Raises:
            InvalidPayloadError: No source given or the base64 is invalid
            MediaNotFoundError: The stored video could not be downloaded
            PayloadTooLargeError: Decoded media exceeds the limit
            EmptyTranscriptError: The model heard nothing
            GatewayError: Upstream failure (rate limit, quota, other)
        """
        if video_path:
            data = await self._download(video_path)
            content_type = content_type_for(video_path)
        elif audio:
            data = decode_media(audio)
            content_type = content_type or "audio/webm"
        else:
            raise InvalidPayloadError()

        return await self.transcribe_bytes(data, content_type, language, response_id)

    async def transcribe_bytes(
        self,
        data: bytes,
        content_type: str,
        language: str = "en",
        response_id: Optional[str] = None,
    ) -> str:
        if not data:
            raise InvalidPayloadError("Recording is empty. Please try recording again.")
        check_payload_size(data, self.max_bytes)

        logger.info(
            f"Transcription request: {len(data)} bytes, {content_type}, language={language}, "
            f"response_id={response_id}"
        )
        text = await self.agent.transcribe(data, content_type, language)
        if not text:
            raise EmptyTranscriptError()

        if response_id:
            await self._persist(response_id, text)
        return text

    async def _download(self, video_path: str) -> bytes:
        if self.storage is None:
            raise MediaNotFoundError("Storage is not configured for this service")
        try:
            return await self.storage.download(video_path)
        except Exception as e:
            logger.error(f"Failed to download video {video_path}: {e}")
            raise MediaNotFoundError(f"Failed to access video: {video_path}") from e

    async def _persist(self, response_id: str, text: str) -> None:
        """Best effort: the transcript is returned even if this write fails."""
        if self.repo is None:
            return
        try:
            updated = await self.repo.update_response(response_id, transcription=text)
        except Exception:
            logger.warning(
                f"Transcription generated but failed to save for response {response_id}",
                exc_info=True,
            )
            return

        if updated:
            logger.info(f"Transcription saved for response {response_id}")
        else:
            logger.warning(f"Response {response_id} not found; transcription not saved")
