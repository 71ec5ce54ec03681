"""Background transcription and analysis of BCQ responses."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict
import asyncio
import logging

from celery import Task
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from agents import registry
from api.services.business_cases import BCQRepository
from api.services.response_analysis import ResponseAnalysisService
from api.services.transcription import TranscriptionService
from core.config import settings
from core.exceptions import BCQError, GatewayRateLimitError, InvalidPayloadError, ResponseNotFoundError
from core.storage.s3 import S3Storage
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)

RATE_LIMIT_COUNTDOWN = 60
MAX_RETRIES = 3


@asynccontextmanager
async def task_repository() -> AsyncIterator[BCQRepository]:
    """Repository on a throwaway engine bound to the task's event loop."""
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as session:
            yield BCQRepository(session)
    finally:
        await engine.dispose()


async def run_transcription(response_id: str, language: str) -> str:
    agent = registry.create("transcription")
    try:
        async with task_repository() as repo:
            response = await repo.get_response(response_id)
            if response is None:
                raise ResponseNotFoundError()
            if not response.video_path:
                raise InvalidPayloadError("Response has no stored video")

            service = TranscriptionService(agent=agent, repo=repo, storage=S3Storage())
            return await service.transcribe(
                video_path=response.video_path,
                language=language,
                response_id=response_id,
            )
    finally:
        await agent.aclose()


async def run_analysis(response_id: str) -> Dict[str, Any]:
    agent = registry.create("bcq_analysis")
    try:
        async with task_repository() as repo:
            return await ResponseAnalysisService(agent=agent, repo=repo).analyze(response_id)
    finally:
        await agent.aclose()


@celery_app.task(name="workers.tasks.bcq.transcribe_response", bind=True)
def transcribe_response(self: Task, response_id: str, language: str = "en") -> dict:
    """Transcribe the stored video of a response, then queue its analysis.

    Args:
        response_id: UUID of the BCQ response
        language: Spoken language code

    Returns:
        Dictionary with the task status
    """
    try:
        text = asyncio.run(run_transcription(response_id, language))
    except GatewayRateLimitError as e:
        logger.warning(f"Rate limited transcribing response {response_id}, retrying")
        raise self.retry(exc=e, countdown=RATE_LIMIT_COUNTDOWN, max_retries=MAX_RETRIES)
    except BCQError as e:
        logger.error(f"Transcription failed for response {response_id}: {e.error_code} {e.message}")
        return {"status": "failed", "response_id": response_id, "error": e.error_code}

    analyze_response.delay(response_id)
    return {"status": "success", "response_id": response_id, "characters": len(text)}


@celery_app.task(name="workers.tasks.bcq.analyze_response", bind=True)
def analyze_response(self: Task, response_id: str) -> dict:
    """Score the content and fluency of a transcribed response.

    The outcome, including failures, is recorded on the response row.
    """
    try:
        result = asyncio.run(run_analysis(response_id))
    except GatewayRateLimitError as e:
        logger.warning(f"Rate limited analyzing response {response_id}, retrying")
        raise self.retry(exc=e, countdown=RATE_LIMIT_COUNTDOWN, max_retries=MAX_RETRIES)
    except BCQError as e:
        logger.error(f"Analysis failed for response {response_id}: {e.error_code} {e.message}")
        return {"status": "failed", "response_id": response_id, "error": e.error_code}

    return {
        "status": "success",
        "response_id": response_id,
        "quality_score": result["quality_score"],
    }
