"""FastAPI dependencies for dependency injection."""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
import jwt

from agents import registry
from api.services.business_cases import BCQRepository
from api.services.response_analysis import ResponseAnalysisService
from api.services.transcription import TranscriptionService
from core.config import settings
from core.storage.s3 import S3Storage
from database.engine import get_db

logger = logging.getLogger(__name__)

RECRUITER_ROLES = {"recruiter", "admin", "management"}

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Recruiter:
    """Authenticated staff member, taken from the bearer JWT claims."""

    user_id: str
    email: Optional[str] = None
    roles: frozenset[str] = field(default_factory=frozenset)


def decode_recruiter_token(token: str) -> Recruiter:
    """
    Verify a bearer JWT and extract the recruiter identity.

    Raises:
        jwt.InvalidTokenError: Bad signature, expired, or missing subject
    """
    payload = jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "exp"]},
    )
    roles = payload.get("roles") or ([payload["role"]] if payload.get("role") else [])
    return Recruiter(
        user_id=str(payload["sub"]),
        email=payload.get("email"),
        roles=frozenset(roles),
    )


async def get_optional_recruiter(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Recruiter]:
    """Recruiter for a valid bearer token with a staff role, otherwise None."""
    if credentials is None:
        return None
    try:
        recruiter = decode_recruiter_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None
    if not recruiter.roles & RECRUITER_ROLES:
        return None
    return recruiter


async def require_recruiter(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Recruiter:
    """Require a bearer JWT with role recruiter, admin or management."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        recruiter = decode_recruiter_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not recruiter.roles & RECRUITER_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return recruiter


# ==================== Services ==================== #
async def get_repository(db: AsyncSession = Depends(get_db)) -> BCQRepository:
    return BCQRepository(db)


def get_storage() -> S3Storage:
    return S3Storage()


def get_transcription_agent():
    return registry.get("transcription")


def get_analysis_agent():
    return registry.get("bcq_analysis")


async def get_transcription_service(
    repo: BCQRepository = Depends(get_repository),
    storage: S3Storage = Depends(get_storage),
    agent=Depends(get_transcription_agent),
) -> TranscriptionService:
    return TranscriptionService(agent=agent, repo=repo, storage=storage)


async def get_analysis_service(
    repo: BCQRepository = Depends(get_repository),
    agent=Depends(get_analysis_agent),
) -> ResponseAnalysisService:
    return ResponseAnalysisService(agent=agent, repo=repo)


def get_analysis_dispatcher() -> Callable[[str], Any]:
    """Queue content/fluency analysis on the Celery ``analysis`` queue."""
    from workers.tasks.bcq import analyze_response

    def dispatch(response_id: str):
        return analyze_response.delay(response_id)

    return dispatch


def get_transcription_dispatcher() -> Callable[[str, str], Any]:
    """Queue a backfill transcription on the Celery ``transcription`` queue."""
    from workers.tasks.bcq import transcribe_response

    def dispatch(response_id: str, language: str = "en"):
        return transcribe_response.delay(response_id, language)

    return dispatch
