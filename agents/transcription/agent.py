"""Transcription agent: recorded answer audio in, verbatim transcript out."""

from typing import Any, Dict
import base64
import logging

from agents.base import BaseAgent
from agents.registry import register_agent
from agents.transcription.prompts import (
    TRANSCRIPTION_SYSTEM_PROMPT,
    TRANSCRIPTION_USER_PROMPT,
)
from agents.transcription.tools import SUBMIT_TRANSCRIPTION
from core.capture.recorder import SUPPORTED_LANGUAGES

logger = logging.getLogger(__name__)


@register_agent("transcription")
class TranscriptionAgent(BaseAgent):
    """Agent that turns an audio or video recording into text."""

    def __init__(self, **kwargs):
        super().__init__(
            name="transcription",
            instructions=TRANSCRIPTION_SYSTEM_PROMPT,
            tools=[SUBMIT_TRANSCRIPTION],
            **kwargs,
        )

    async def process(self, input_data: Dict[str, Any]) -> Dict[str, Any]:
        """Transcribe one recording.

        Args:
            input_data: Dictionary with 'media' (bytes), 'content_type' and
                       optional 'language' (default 'en')

        Returns:
            Dictionary with 'transcription' (may be empty)
        """
        text = await self.transcribe(
            input_data["media"],
            input_data.get("content_type") or "audio/webm",
            input_data.get("language") or "en",
        )
        return {"transcription": text}

    async def transcribe(self, media: bytes, content_type: str, language: str = "en") -> str:
        encoded = base64.b64encode(media).decode("ascii")
        content = [
            {
                "type": "text",
                "text": TRANSCRIPTION_USER_PROMPT.format(
                    language=language,
                    language_name=SUPPORTED_LANGUAGES.get(language, language),
                ),
            },
            {
                "type": "image_url",
                "image_url": {"url": f"data:{content_type};base64,{encoded}"},
            },
        ]

        arguments = await self.call_tool(content, "submit_transcription")
        transcription = arguments.get("transcription") or ""
        logger.info(f"Transcribed {len(media)} bytes into {len(transcription)} characters")
        return transcription.strip()
