"""
Application Models

A candidate's application to one job, with the BCQ access token and the
timestamps that track how the candidate moves through the assessment.
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Integer,
    func,
    Enum as SQLEnum,
)
from database.engine import Base

if TYPE_CHECKING:
    from database.models.jobs import Job
    from database.models.business_case_responses import BusinessCaseResponse


# ==================== Application Enums ===================== #
class ApplicationStatus(str, PyEnum):
    """Application status values touched by the BCQ workflow."""

    APPLIED = "applied"
    BCQ_SENT = "bcq_sent"
    BCQ_RECEIVED = "bcq_received"
    UNDER_REVIEW = "under_review"
    REJECTED = "rejected"


# ==================== Application Model ===================== #
class Application(Base):
    """
    Job application - represents a candidate applying to a specific job.

    The ``bcq_access_token`` is the only credential for the candidate's
    anonymous BCQ session and never changes once issued.
    """

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    job_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    candidate_name: Mapped[str | None] = mapped_column(String(255))
    candidate_email: Mapped[str | None] = mapped_column(String(255), index=True)

    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, native_enum=False, length=50),
        nullable=False,
        default=ApplicationStatus.APPLIED,
        index=True,
    )

    # BCQ access
    bcq_access_token: Mapped[str | None] = mapped_column(
        String(128), unique=True, index=True
    )
    bcq_invitation_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # BCQ timeline
    bcq_link_opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    bcq_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    bcq_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    business_case_completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    bcq_response_time_minutes: Mapped[int | None] = mapped_column(Integer)
    bcq_delayed: Mapped[bool | None] = mapped_column(Boolean)

    # Timestamps
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
    job: Mapped["Job"] = relationship("Job", back_populates="applications")
    bcq_responses: Mapped[list["BusinessCaseResponse"]] = relationship(
        "BusinessCaseResponse", back_populates="application", cascade="all, delete-orphan"
    )
