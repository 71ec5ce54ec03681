"""
Business Case Response Models

One row per (application, question). Holds the uploaded answer video, the
transcript, and the two independent AI scorecards (fluency and content).
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Float,
    func,
    Text,
    JSON,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base

if TYPE_CHECKING:
    from database.models.applications import Application
    from database.models.jobs import BusinessCase


class ContentAnalysisStatus(str, PyEnum):
    """Status of the content/fluency analysis for one response."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


# Fields produced by transcription and analysis; cleared when a question is re-answered
DERIVED_FIELDS: tuple[str, ...] = (
    "transcription",
    "fluency_pronunciation_score",
    "fluency_pace_score",
    "fluency_hesitation_score",
    "fluency_grammar_score",
    "fluency_overall_score",
    "fluency_notes",
    "content_quality_score",
    "content_strengths",
    "content_areas_to_probe",
    "content_summary",
    "content_analysis_error",
)


class BusinessCaseResponse(Base):
    """A candidate's answer to one business case question."""

    __tablename__ = "business_case_responses"
    __table_args__ = (
        UniqueConstraint(
            "application_id", "business_case_id", name="uq_bcq_response_application_question"
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    application_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    business_case_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("business_cases.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Answer
    video_url: Mapped[str | None] = mapped_column(String(1000))
    video_path: Mapped[str | None] = mapped_column(String(500))
    text_response: Mapped[str | None] = mapped_column(Text)
    transcription: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Fluency scorecard
    fluency_pronunciation_score: Mapped[float | None] = mapped_column(Float)
    fluency_pace_score: Mapped[float | None] = mapped_column(Float)
    fluency_hesitation_score: Mapped[float | None] = mapped_column(Float)
    fluency_grammar_score: Mapped[float | None] = mapped_column(Float)
    fluency_overall_score: Mapped[float | None] = mapped_column(Float)
    fluency_notes: Mapped[str | None] = mapped_column(Text)

    # Content scorecard
    content_quality_score: Mapped[float | None] = mapped_column(Float)
    content_strengths: Mapped[list[str] | None] = mapped_column(JSON)
    content_areas_to_probe: Mapped[list[str] | None] = mapped_column(JSON)
    content_summary: Mapped[str | None] = mapped_column(Text)
    content_analysis_status: Mapped[ContentAnalysisStatus] = mapped_column(
        SQLEnum(ContentAnalysisStatus, native_enum=False, length=20),
        nullable=False,
        default=ContentAnalysisStatus.PENDING,
    )
    content_analysis_error: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    application: Mapped["Application"] = relationship(
        "Application", back_populates="bcq_responses"
    )
    business_case: Mapped["BusinessCase"] = relationship(
        "BusinessCase", back_populates="responses"
    )

    @property
    def is_answered(self) -> bool:
        """A response counts as answered once it has a video."""
        return self.video_url is not None
