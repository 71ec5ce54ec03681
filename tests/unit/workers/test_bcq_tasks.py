"""Tests for the BCQ Celery tasks."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest
from celery.exceptions import Retry

from core.exceptions import GatewayRateLimitError, InvalidPayloadError, MissingTranscriptError
from tests.fakes import FakeStorage, FakeTranscriptionAgent
from workers.tasks import bcq
from workers.tasks.bcq import analyze_response, transcribe_response


@pytest.fixture
def task_repo(repo):
    @asynccontextmanager
    async def fake_task_repository():
        yield repo

    with patch.object(bcq, "task_repository", fake_task_repository):
        yield repo


class TestRunTranscription:

    @pytest.mark.asyncio
    async def test_transcribes_stored_video(self, task_repo, storage):
        response = task_repo.add_response(task_repo.questions["job-1-q1"])
        storage.objects[response.video_path] = (b"stored-video", "video/webm")
        agent = FakeTranscriptionAgent(text="Backfilled transcript")

        with patch.object(bcq.registry, "create", return_value=agent), \
                patch.object(bcq, "S3Storage", return_value=storage):
            text = await bcq.run_transcription(response.id, "es")

        assert text == "Backfilled transcript"
        assert response.transcription == "Backfilled transcript"
        assert agent.calls == [(b"stored-video", "video/webm", "es")]

    @pytest.mark.asyncio
    async def test_response_without_video(self, task_repo):
        response = task_repo.add_response(task_repo.questions["job-1-q1"], video_url=None, video_path=None)

        with patch.object(bcq.registry, "create", return_value=FakeTranscriptionAgent()), \
                patch.object(bcq, "S3Storage", return_value=FakeStorage()):
            with pytest.raises(InvalidPayloadError):
                await bcq.run_transcription(response.id, "en")


class TestTranscribeTask:

    def test_success_queues_analysis(self):
        with patch.object(bcq, "run_transcription", AsyncMock(return_value="Twelve chars")), \
                patch.object(analyze_response, "delay") as delay:
            result = transcribe_response("resp-1", "en")

        assert result == {"status": "success", "response_id": "resp-1", "characters": 12}
        delay.assert_called_once_with("resp-1")

    def test_rate_limit_retries(self):
        with patch.object(bcq, "run_transcription", AsyncMock(side_effect=GatewayRateLimitError())), \
                patch.object(transcribe_response, "retry", side_effect=Retry()) as retry, \
                patch.object(analyze_response, "delay") as delay:
            with pytest.raises(Retry):
                transcribe_response("resp-1")

        assert retry.call_args.kwargs["countdown"] == bcq.RATE_LIMIT_COUNTDOWN
        assert retry.call_args.kwargs["max_retries"] == bcq.MAX_RETRIES
        delay.assert_not_called()

    def test_domain_failure_is_reported(self):
        with patch.object(bcq, "run_transcription", AsyncMock(side_effect=InvalidPayloadError())), \
                patch.object(analyze_response, "delay") as delay:
            result = transcribe_response("resp-1")

        assert result == {"status": "failed", "response_id": "resp-1", "error": "INVALID_PAYLOAD"}
        delay.assert_not_called()


class TestAnalyzeTask:

    def test_success(self):
        analysis = {"quality_score": 82.0, "strengths": [], "areas_to_probe": [], "summary": ""}
        with patch.object(bcq, "run_analysis", AsyncMock(return_value=analysis)):
            result = analyze_response("resp-1")

        assert result == {"status": "success", "response_id": "resp-1", "quality_score": 82.0}

    def test_missing_transcript(self):
        with patch.object(bcq, "run_analysis", AsyncMock(side_effect=MissingTranscriptError())):
            result = analyze_response("resp-1")

        assert result["status"] == "failed"
        assert result["error"] == "MISSING_TRANSCRIPT"

    def test_rate_limit_retries(self):
        with patch.object(bcq, "run_analysis", AsyncMock(side_effect=GatewayRateLimitError())), \
                patch.object(analyze_response, "retry", side_effect=Retry()):
            with pytest.raises(Retry):
                analyze_response("resp-1")
