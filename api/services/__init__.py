"""
API Services Layer.

Database access and workflow logic for the BCQ endpoints,
separate from the AI gateway agents.
"""

from api.services.business_cases import BCQRepository

from api.services.bcq_access import (
    validate_access,
    verify_access,
    issue_access_token,
    build_portal_url,
)

from api.services.bcq_session import BCQSessionController

from api.services.transcription import TranscriptionService

from api.services.response_analysis import ResponseAnalysisService

__all__ = [
    # Repository
    "BCQRepository",
    # Access
    "validate_access",
    "verify_access",
    "issue_access_token",
    "build_portal_url",
    # Session
    "BCQSessionController",
    # AI
    "TranscriptionService",
    "ResponseAnalysisService",
]
