"""Tests for the transcription service."""

import base64

import pytest

from api.services.transcription import TranscriptionService, check_payload_size, decode_media
from core.exceptions import (
    EmptyTranscriptError,
    InvalidPayloadError,
    MediaNotFoundError,
    PayloadTooLargeError,
)
from tests.fakes import FakeRepository, FakeStorage, FakeTranscriptionAgent


class TestPayloadChecks:

    def test_exactly_the_limit_is_accepted(self):
        check_payload_size(b"x" * 10, max_bytes=10)

    def test_one_byte_over_is_rejected(self):
        with pytest.raises(PayloadTooLargeError) as exc_info:
            check_payload_size(b"x" * 11, max_bytes=10)
        assert exc_info.value.status_code == 413

    def test_decode_plain_base64(self):
        assert decode_media(base64.b64encode(b"audio").decode()) == b"audio"

    def test_decode_data_url(self):
        encoded = base64.b64encode(b"audio").decode()
        assert decode_media(f"data:audio/webm;codecs=opus;base64,{encoded}") == b"audio"

    def test_invalid_base64(self):
        with pytest.raises(InvalidPayloadError):
            decode_media("not base64!!")


class TestTranscriptionService:

    @pytest.fixture
    def agent(self):
        return FakeTranscriptionAgent(text="We would price per seat.")

    @pytest.fixture
    def service(self, agent, repo, storage):
        return TranscriptionService(agent=agent, repo=repo, storage=storage, max_bytes=1024)

    @pytest.mark.asyncio
    async def test_inline_audio(self, service, agent):
        encoded = base64.b64encode(b"audio-bytes").decode()

        text = await service.transcribe(audio=encoded, content_type="audio/ogg", language="de")

        assert text == "We would price per seat."
        assert agent.calls == [(b"audio-bytes", "audio/ogg", "de")]

    @pytest.mark.asyncio
    async def test_video_path_takes_precedence(self, service, agent, storage):
        storage.objects["app-1/job-1-q1.mp4"] = (b"stored-video", "video/mp4")

        await service.transcribe(
            audio=base64.b64encode(b"inline").decode(),
            video_path="app-1/job-1-q1.mp4",
        )
        assert agent.calls == [(b"stored-video", "video/mp4", "en")]

    @pytest.mark.asyncio
    async def test_missing_stored_video(self, service):
        with pytest.raises(MediaNotFoundError):
            await service.transcribe(video_path="app-1/missing.webm")

    @pytest.mark.asyncio
    async def test_no_source(self, service):
        with pytest.raises(InvalidPayloadError):
            await service.transcribe()

    @pytest.mark.asyncio
    async def test_too_large(self, service, agent):
        with pytest.raises(PayloadTooLargeError):
            await service.transcribe_bytes(b"x" * 1025, "audio/webm")
        assert agent.calls == []

    @pytest.mark.asyncio
    async def test_empty_transcript(self, repo, storage):
        service = TranscriptionService(agent=FakeTranscriptionAgent(text=""), repo=repo, storage=storage)

        with pytest.raises(EmptyTranscriptError):
            await service.transcribe_bytes(b"silence", "audio/webm")

    @pytest.mark.asyncio
    async def test_transcript_is_saved(self, service, repo):
        response = repo.add_response(repo.questions["job-1-q1"])

        await service.transcribe_bytes(b"audio", "audio/webm", response_id=response.id)
        assert response.transcription == "We would price per seat."

    @pytest.mark.asyncio
    async def test_save_failure_still_returns_text(self, agent, storage):
        repo = FakeRepository()
        repo.failing.add("update_response")
        service = TranscriptionService(agent=agent, repo=repo, storage=storage)

        assert await service.transcribe_bytes(b"audio", "audio/webm", response_id="r-1") == agent.text

    @pytest.mark.asyncio
    async def test_without_repository(self, agent):
        service = TranscriptionService(agent=agent, storage=FakeStorage())
        assert await service.transcribe_bytes(b"audio", "audio/webm", response_id="r-1") == agent.text
