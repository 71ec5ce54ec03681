"""
AI function endpoints: transcription and content/fluency analysis.

Both are staff-only; the candidate flow calls the services directly.
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import (
    Recruiter,
    get_analysis_service,
    get_transcription_service,
    require_recruiter,
)
from api.schemas.business_case import (
    AnalyzeResponseRequest,
    AnalyzeResponseResponse,
    TranscribeVideoRequest,
    TranscribeVideoResponse,
)
from api.services.response_analysis import ResponseAnalysisService
from api.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/transcribe-video",
    response_model=TranscribeVideoResponse,
    summary="Transcribe Video",
    description=(
        "Transcribe base64 audio or a stored video. Oversized media returns 413, "
        "an empty transcript 422, AI rate limiting 429 and exhausted quota 402."
    ),
)
async def transcribe_video(
    payload: TranscribeVideoRequest,
    service: TranscriptionService = Depends(get_transcription_service),
    recruiter: Recruiter = Depends(require_recruiter),
):
    text = await service.transcribe(
        audio=payload.audio,
        content_type=payload.content_type,
        video_path=payload.video_path,
        language=payload.language,
        response_id=payload.response_id,
    )
    return TranscribeVideoResponse(ok=True, text=text)


@router.post(
    "/analyze-bcq-response",
    response_model=AnalyzeResponseResponse,
    summary="Analyze BCQ Response",
    description="Score a transcribed response for content quality and spoken fluency.",
)
async def analyze_bcq_response(
    payload: AnalyzeResponseRequest,
    service: ResponseAnalysisService = Depends(get_analysis_service),
    recruiter: Recruiter = Depends(require_recruiter),
):
    analysis = await service.analyze(payload.response_id)
    return AnalyzeResponseResponse(success=True, analysis=analysis)
