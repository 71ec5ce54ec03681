"""SQLAlchemy models for jobs, applications and BCQ responses."""

from database.models.jobs import Job, BusinessCase
from database.models.applications import Application, ApplicationStatus
from database.models.business_case_responses import (
    BusinessCaseResponse,
    ContentAnalysisStatus,
    DERIVED_FIELDS,
)

__all__ = [
    "Job",
    "BusinessCase",
    "Application",
    "ApplicationStatus",
    "BusinessCaseResponse",
    "ContentAnalysisStatus",
    "DERIVED_FIELDS",
]
