"""
Recruiter endpoints for BCQ invitations, responses and stored videos.
"""

from typing import Any, Callable
import logging

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import (
    Recruiter,
    get_analysis_dispatcher,
    get_repository,
    get_storage,
    get_transcription_dispatcher,
    require_recruiter,
)
from api.schemas.business_case import (
    ApplicationResponsesOut,
    InvitationResponse,
    RecruiterResponseOut,
    TaskQueuedResponse,
    VideoDeletionResponse,
)
from api.services.bcq_access import build_portal_url, issue_access_token
from api.services.business_cases import BCQRepository
from core.capture import SUPPORTED_LANGUAGES
from core.config import settings
from core.exceptions import (
    ApplicationNotFoundError,
    InvalidRecordingError,
    ResponseNotFoundError,
)
from core.storage.s3 import S3Storage

logger = logging.getLogger(__name__)

router = APIRouter()


def transcription_state(response) -> str:
    """``available`` with a transcript, ``missing`` for a video without one, else ``pending``."""
    if response.transcription:
        return "available"
    if response.video_url:
        return "missing"
    return "pending"


def recruiter_response_view(response) -> RecruiterResponseOut:
    question = response.business_case
    status_value = response.content_analysis_status
    return RecruiterResponseOut(
        id=response.id,
        question_id=response.business_case_id,
        question_number=question.question_number if question else None,
        question_title=question.question_title if question else None,
        video_url=response.video_url,
        video_path=response.video_path,
        completed_at=response.completed_at,
        transcription=response.transcription,
        transcription_state=transcription_state(response),
        content_analysis_status=getattr(status_value, "value", status_value),
        content_analysis_error=response.content_analysis_error,
        content_quality_score=response.content_quality_score,
        content_strengths=response.content_strengths,
        content_areas_to_probe=response.content_areas_to_probe,
        content_summary=response.content_summary,
        fluency_pronunciation_score=response.fluency_pronunciation_score,
        fluency_pace_score=response.fluency_pace_score,
        fluency_hesitation_score=response.fluency_hesitation_score,
        fluency_grammar_score=response.fluency_grammar_score,
        fluency_overall_score=response.fluency_overall_score,
        fluency_notes=response.fluency_notes,
    )


async def get_application_response(repo: BCQRepository, application_id: str, response_id: str):
    response = await repo.get_response(response_id)
    if response is None or response.application_id != application_id:
        raise ResponseNotFoundError()
    return response


@router.post(
    "/{application_id}/bcq-invitation",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue BCQ Invitation",
    description="Issue the one-time access token and return the candidate portal link.",
)
async def create_bcq_invitation(
    application_id: str = Path(..., description="Application ID"),
    repo: BCQRepository = Depends(get_repository),
    recruiter: Recruiter = Depends(require_recruiter),
):
    token = await issue_access_token(repo, application_id)
    application = await repo.get_application(application_id)
    logger.info(f"BCQ invitation for application {application_id} issued by {recruiter.user_id}")
    return InvitationResponse(
        application_id=application_id,
        portal_url=build_portal_url(
            settings.portal_base_url, application.job_id, application_id, token
        ),
        invitation_sent_at=application.bcq_invitation_sent_at,
    )


@router.get(
    "/{application_id}/bcq-responses",
    response_model=ApplicationResponsesOut,
    summary="List BCQ Responses",
)
async def list_bcq_responses(
    application_id: str = Path(..., description="Application ID"),
    repo: BCQRepository = Depends(get_repository),
    recruiter: Recruiter = Depends(require_recruiter),
):
    application = await repo.get_application(application_id)
    if application is None:
        raise ApplicationNotFoundError()

    responses = await repo.list_responses(application_id)
    responses.sort(key=lambda r: r.business_case.question_number if r.business_case else 0)
    return ApplicationResponsesOut(
        application_id=application_id,
        business_case_completed=bool(application.business_case_completed),
        bcq_response_time_minutes=application.bcq_response_time_minutes,
        bcq_delayed=application.bcq_delayed,
        responses=[recruiter_response_view(r) for r in responses],
    )


@router.post(
    "/{application_id}/bcq-responses/{response_id}/transcribe",
    response_model=TaskQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Backfill Transcription",
    description="Queue transcription of the stored answer video.",
)
async def queue_transcription(
    application_id: str = Path(...),
    response_id: str = Path(...),
    language: str = Query("en"),
    repo: BCQRepository = Depends(get_repository),
    dispatch: Callable[[str, str], Any] = Depends(get_transcription_dispatcher),
    recruiter: Recruiter = Depends(require_recruiter),
):
    if language not in SUPPORTED_LANGUAGES:
        raise InvalidRecordingError(f"Unsupported language: {language}")

    response = await get_application_response(repo, application_id, response_id)
    if not response.video_path:
        raise InvalidRecordingError("This response has no stored video to transcribe")

    task = dispatch(response_id, language)
    return TaskQueuedResponse(task_id=str(task.id), response_id=response_id)


@router.post(
    "/{application_id}/bcq-responses/{response_id}/analyze",
    response_model=TaskQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue Analysis",
)
async def queue_analysis(
    application_id: str = Path(...),
    response_id: str = Path(...),
    repo: BCQRepository = Depends(get_repository),
    dispatch: Callable[[str], Any] = Depends(get_analysis_dispatcher),
    recruiter: Recruiter = Depends(require_recruiter),
):
    await get_application_response(repo, application_id, response_id)
    task = dispatch(response_id)
    return TaskQueuedResponse(task_id=str(task.id), response_id=response_id)


@router.delete(
    "/{application_id}/bcq-videos",
    response_model=VideoDeletionResponse,
    summary="Delete BCQ Videos",
    description="Delete every stored answer video of an application and clear the references.",
)
async def delete_bcq_videos(
    application_id: str = Path(...),
    repo: BCQRepository = Depends(get_repository),
    storage: S3Storage = Depends(get_storage),
    recruiter: Recruiter = Depends(require_recruiter),
):
    responses = [r for r in await repo.list_responses(application_id) if r.video_url]
    if not responses:
        return VideoDeletionResponse(
            success=True, deleted_count=0, total_videos=0, message="No videos to delete"
        )

    keys = [r.video_path or storage.key_from_url(r.video_url) for r in responses]
    deleted_count = 0
    errors: list[str] = []
    for key in keys:
        try:
            await storage.delete(key)
            deleted_count += 1
        except Exception as e:
            logger.error(f"Error deleting video {key}: {e}")
            errors.append(f"Failed to delete {key}: {e}")

    await repo.clear_video_urls(application_id)
    logger.info(
        f"Video deletion for application {application_id} by {recruiter.user_id}: "
        f"{deleted_count}/{len(keys)} deleted"
    )
    return VideoDeletionResponse(
        success=True,
        deleted_count=deleted_count,
        total_videos=len(keys),
        errors=errors or None,
        message=f"Successfully deleted {deleted_count} video(s)",
    )
