"""
Access token validation and issuance for anonymous BCQ sessions.

The per-application ``bcq_access_token`` is the only credential a candidate
holds. Unknown applications and wrong tokens are rejected with the same
``InvalidAccessError`` so a caller cannot probe which applications exist.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import urlencode
import hmac
import logging
import secrets

from api.services.business_cases import BCQRepository
from core.exceptions import (
    AccessTokenAlreadyIssuedError,
    ApplicationNotFoundError,
    InvalidAccessError,
)
from core.utils.datetime import now as utc_now

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


@dataclass(frozen=True)
class AccessGrant:
    """Snapshot of a validated application, cached by the session controller."""

    application_id: str
    job_id: str
    token: str
    candidate_name: Optional[str]
    link_opened_at: datetime
    started_at: Optional[datetime]
    completed: bool


def tokens_match(stored: Optional[str], provided: Optional[str]) -> bool:
    """Constant-time exact comparison; a missing token never matches."""
    if not stored or not provided:
        return False
    return hmac.compare_digest(stored.encode(), provided.encode())


async def verify_access(
    repo: BCQRepository,
    application_id: str,
    token: str,
    job_id: Optional[str] = None,
):
    """
    Re-check the token against the stored one without side effects.

    Used before every state-changing write, regardless of what the session
    already validated. When ``job_id`` is given the application must belong to that job.

    Returns:
        The application row
    """
    try:
        application = await repo.get_application(application_id)
    except Exception:
        logger.warning("Application lookup failed during token check", exc_info=True)
        raise InvalidAccessError()

    if application is None or not tokens_match(application.bcq_access_token, token):
        logger.warning("BCQ access rejected")
        raise InvalidAccessError()
    if job_id is not None and application.job_id != job_id:
        logger.warning("BCQ access rejected: link does not match the job")
        raise InvalidAccessError()

    return application


async def validate_access(
    repo: BCQRepository,
    application_id: str,
    token: str,
    now: Optional[datetime] = None,
    job_id: Optional[str] = None,
) -> AccessGrant:
    """
    Validate a candidate's link and start the response-time clock.

    On the first successful validation ``bcq_link_opened_at`` is set.

    Args:
        repo: BCQ repository
        application_id: Application identifier from the link
        token: Token from the link
        now: Current time (defaults to UTC now)
        job_id: Job from the link path, checked when given

    Returns:
        AccessGrant for the session
    """
    application = await verify_access(repo, application_id, token, job_id=job_id)
    opened_at = application.bcq_link_opened_at

    if opened_at is None:
        opened_at = now or utc_now()
        await repo.mark_link_opened(application_id, opened_at)
        logger.info(f"BCQ link opened for application {application_id}")

    return AccessGrant(
        application_id=application.id,
        job_id=application.job_id,
        token=token,
        candidate_name=application.candidate_name,
        link_opened_at=opened_at,
        started_at=application.bcq_started_at,
        completed=bool(application.business_case_completed),
    )


def generate_access_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


async def issue_access_token(
    repo: BCQRepository,
    application_id: str,
    now: Optional[datetime] = None,
) -> str:
    """
    Issue the one-time BCQ access token for an application.

    Raises:
        ApplicationNotFoundError: Unknown application
        AccessTokenAlreadyIssuedError: A token already exists; tokens are immutable
    """
    application = await repo.get_application(application_id)
    if application is None:
        raise ApplicationNotFoundError()
    if application.bcq_access_token:
        raise AccessTokenAlreadyIssuedError()

    token = generate_access_token()
    stored = await repo.store_access_token(application_id, token, now or utc_now())
    if not stored:
        # Another request issued a token between our read and write
        raise AccessTokenAlreadyIssuedError()

    logger.info(f"Issued BCQ access token for application {application_id}")
    return token


def build_portal_url(base_url: str, job_id: str, application_id: str, token: str) -> str:
    """Candidate link: ``/business-case/{job_id}?applicationId={id}&token={token}``."""
    query = urlencode({"applicationId": application_id, "token": token})
    return f"{base_url.rstrip('/')}/business-case/{job_id}?{query}"
