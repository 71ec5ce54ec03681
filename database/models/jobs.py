"""
Jobs Module

Job postings and the ordered business case questions (BCQs) a candidate
answers on video for each job.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Integer,
    func,
    Text,
    UniqueConstraint,
)
from database.engine import Base

if TYPE_CHECKING:
    from database.models.applications import Application
    from database.models.business_case_responses import BusinessCaseResponse


def _uuid() -> str:
    return str(uuid.uuid4())


# ==================== Job Model ===================== #
class Job(Base):
    """Job posting that applications and business case questions belong to."""

    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    business_cases: Mapped[list["BusinessCase"]] = relationship(
        "BusinessCase",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="BusinessCase.question_number",
    )
    applications: Mapped[list["Application"]] = relationship(
        "Application", back_populates="job", cascade="all, delete-orphan"
    )


# ==================== Business Case Question Model ===================== #
class BusinessCase(Base):
    """
    A business case question. Questions are presented in ``question_number``
    order and each is answered with a video, optionally with a typed text
    response as well.
    """

    __tablename__ = "business_cases"
    __table_args__ = (
        UniqueConstraint("job_id", "question_number", name="uq_business_case_job_number"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_number: Mapped[int] = mapped_column(Integer, nullable=False)
    question_title: Mapped[str] = mapped_column(String(500), nullable=False)
    question_description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Optional explainer video recorded by the recruiter
    video_url: Mapped[str | None] = mapped_column(String(1000))
    has_text_response: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    job: Mapped["Job"] = relationship("Job", back_populates="business_cases")
    responses: Mapped[list["BusinessCaseResponse"]] = relationship(
        "BusinessCaseResponse", back_populates="business_case", cascade="all, delete-orphan"
    )

    @property
    def prompt_text(self) -> str:
        """Title and description as a single block for AI prompts."""
        return f"{self.question_title}\n{self.question_description or ''}".strip()
