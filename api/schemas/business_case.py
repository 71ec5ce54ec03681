"""Pydantic schemas for the BCQ candidate portal, functions and recruiter endpoints."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case is accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== Candidate session ==================== #
class QuestionOut(CamelModel):
    id: str
    question_number: int
    question_title: str
    question_description: str
    video_url: Optional[str] = None
    has_text_response: bool = False
    answered: bool = False


class SessionOut(CamelModel):
    """Serialized session state for the candidate page."""

    status: Literal["loading", "invalid", "ready", "submitting", "completed", "error"]
    application_id: str
    questions: list[QuestionOut] = Field(default_factory=list)
    current_index: Optional[int] = None
    current_question_id: Optional[str] = None
    answered_count: int = 0
    total_questions: int = 0
    can_go_next: bool = False
    can_go_previous: bool = False
    stage: Optional[Literal["uploading", "transcribing"]] = None
    error: Optional[str] = None
    transcription: Optional[str] = Field(
        default=None, description="Transcript of the answer just submitted, if available"
    )


class NavigateRequest(CamelModel):
    application_id: str
    token: str
    direction: Literal["next", "previous"]
    current_question_id: Optional[str] = Field(
        default=None, description="Question the candidate is currently viewing"
    )


class VideoUrlRequest(CamelModel):
    video_path: str = Field(min_length=1)
    application_id: Optional[str] = None
    bcq_access_token: Optional[str] = None


class VideoUrlResponse(CamelModel):
    signed_url: str
    expires_in: int
    expires_at: int = Field(description="Expiry as epoch milliseconds")


# ==================== Functions ==================== #
class TranscribeVideoRequest(CamelModel):
    audio: Optional[str] = Field(default=None, description="Base64 encoded audio or video")
    content_type: Optional[str] = None
    video_path: Optional[str] = Field(default=None, description="Storage key of an uploaded video")
    language: str = "en"
    response_id: Optional[str] = None


class TranscribeVideoResponse(CamelModel):
    ok: bool
    text: Optional[str] = None


class AnalyzeResponseRequest(CamelModel):
    response_id: str = Field(min_length=1)


class FluencyScorecard(CamelModel):
    vocabulary_clarity_score: Optional[float] = None
    sentence_flow_score: Optional[float] = None
    hesitation_score: Optional[float] = None
    grammar_score: Optional[float] = None
    overall_score: Optional[float] = None
    notes: str = ""


class AnalysisOut(CamelModel):
    quality_score: Optional[float] = None
    strengths: list[str] = Field(default_factory=list)
    areas_to_probe: list[str] = Field(default_factory=list)
    summary: str = ""
    fluency_analysis: Optional[FluencyScorecard] = None


class AnalyzeResponseResponse(CamelModel):
    success: bool
    analysis: AnalysisOut


# ==================== Recruiter ==================== #
class InvitationResponse(CamelModel):
    application_id: str
    portal_url: str
    invitation_sent_at: datetime


class TaskQueuedResponse(CamelModel):
    status: Literal["queued"] = "queued"
    task_id: str
    response_id: str


class RecruiterResponseOut(CamelModel):
    id: str
    question_id: str
    question_number: Optional[int] = None
    question_title: Optional[str] = None
    video_url: Optional[str] = None
    video_path: Optional[str] = None
    completed_at: Optional[datetime] = None
    transcription: Optional[str] = None
    transcription_state: Literal["pending", "available", "missing"]
    content_analysis_status: str
    content_analysis_error: Optional[str] = None
    content_quality_score: Optional[float] = None
    content_strengths: Optional[list[str]] = None
    content_areas_to_probe: Optional[list[str]] = None
    content_summary: Optional[str] = None
    fluency_pronunciation_score: Optional[float] = None
    fluency_pace_score: Optional[float] = None
    fluency_hesitation_score: Optional[float] = None
    fluency_grammar_score: Optional[float] = None
    fluency_overall_score: Optional[float] = None
    fluency_notes: Optional[str] = None


class ApplicationResponsesOut(CamelModel):
    application_id: str
    business_case_completed: bool
    bcq_response_time_minutes: Optional[int] = None
    bcq_delayed: Optional[bool] = None
    responses: list[RecruiterResponseOut]


class VideoDeletionResponse(CamelModel):
    success: bool
    deleted_count: int
    total_videos: int
    errors: Optional[list[str]] = None
    message: str
