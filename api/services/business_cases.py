"""
Repository for business case questions, applications and BCQ responses.

All database access of the BCQ workflow goes through ``BCQRepository`` so the
session controller and the AI services stay independent of SQLAlchemy.
"""

from datetime import datetime
from typing import Any, Optional
import logging
import uuid

from sqlalchemy import select, update, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models import (
    Application,
    ApplicationStatus,
    BusinessCase,
    BusinessCaseResponse,
    ContentAnalysisStatus,
    DERIVED_FIELDS,
)

logger = logging.getLogger(__name__)


class BCQRepository:
    """Typed row access for the ``applications``, ``business_cases`` and
    ``business_case_responses`` tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ==================== Applications ==================== #
    async def get_application(self, application_id: str) -> Optional[Application]:
        """Fetch an application, bypassing the identity map so token checks see fresh data."""
        result = await self.session.execute(
            select(Application)
            .where(Application.id == application_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def mark_link_opened(self, application_id: str, opened_at: datetime) -> bool:
        """Set ``bcq_link_opened_at`` only if it is still unset."""
        return await self._set_once(application_id, "bcq_link_opened_at", opened_at)

    async def mark_started(self, application_id: str, started_at: datetime) -> bool:
        """Set ``bcq_started_at`` only if it is still unset."""
        return await self._set_once(application_id, "bcq_started_at", started_at)

    async def _set_once(self, application_id: str, column: str, value: datetime) -> bool:
        attribute = getattr(Application, column)
        result = await self.session.execute(
            update(Application)
            .where(Application.id == application_id, attribute.is_(None))
            .values({column: value})
        )
        await self.session.commit()
        return result.rowcount > 0

    async def store_access_token(
        self, application_id: str, token: str, sent_at: datetime
    ) -> bool:
        """Store a newly issued token. Returns False if a token already exists."""
        result = await self.session.execute(
            update(Application)
            .where(
                Application.id == application_id,
                Application.bcq_access_token.is_(None),
            )
            .values(
                bcq_access_token=token,
                bcq_invitation_sent_at=sent_at,
                status=ApplicationStatus.BCQ_SENT,
            )
        )
        await self.session.commit()
        return result.rowcount > 0

    async def mark_completed(
        self,
        application_id: str,
        completed_at: datetime,
        response_time_minutes: Optional[int],
        delayed: bool,
    ) -> None:
        await self.session.execute(
            update(Application)
            .where(Application.id == application_id)
            .values(
                business_case_completed=True,
                bcq_completed_at=completed_at,
                bcq_response_time_minutes=response_time_minutes,
                bcq_delayed=delayed,
                status=ApplicationStatus.BCQ_RECEIVED,
            )
        )
        await self.session.commit()

    # ==================== Questions ==================== #
    async def list_questions(self, job_id: str) -> list[BusinessCase]:
        result = await self.session.execute(
            select(BusinessCase)
            .where(BusinessCase.job_id == job_id)
            .order_by(BusinessCase.question_number.asc())
        )
        return list(result.scalars().all())

    # ==================== Responses ==================== #
    async def list_responses(self, application_id: str) -> list[BusinessCaseResponse]:
        result = await self.session.execute(
            select(BusinessCaseResponse)
            .options(selectinload(BusinessCaseResponse.business_case))
            .where(BusinessCaseResponse.application_id == application_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_response(self, response_id: str) -> Optional[BusinessCaseResponse]:
        """Fetch one response together with its question."""
        result = await self.session.execute(
            select(BusinessCaseResponse)
            .options(selectinload(BusinessCaseResponse.business_case))
            .where(BusinessCaseResponse.id == response_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_response(
        self,
        application_id: str,
        business_case_id: str,
        video_url: str,
        video_path: str,
        completed_at: datetime,
        text_response: Optional[str] = None,
    ) -> BusinessCaseResponse:
        """
        Insert or overwrite the response for (application, question).

        A re-submission replaces the video and clears the transcript and
        scorecards that described the previous one.

        Returns:
            The stored response row
        """
        values: dict[str, Any] = {
            "video_url": video_url,
            "video_path": video_path,
            "completed_at": completed_at,
            "content_analysis_status": ContentAnalysisStatus.PENDING,
        }
        if text_response is not None:
            values["text_response"] = text_response

        stmt = pg_insert(BusinessCaseResponse).values(
            id=str(uuid.uuid4()),
            application_id=application_id,
            business_case_id=business_case_id,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                BusinessCaseResponse.application_id,
                BusinessCaseResponse.business_case_id,
            ],
            set_={
                **values,
                **{field: None for field in DERIVED_FIELDS},
                "updated_at": func.now(),
            },
        )
        result = await self.session.scalars(
            stmt.returning(BusinessCaseResponse),
            execution_options={"populate_existing": True},
        )
        response = result.one()
        await self.session.commit()

        logger.info(
            f"Upserted BCQ response {response.id} for application {application_id}, "
            f"question {business_case_id}"
        )
        return response

    async def clear_video_urls(self, application_id: str) -> int:
        """Detach every stored video from an application's responses."""
        result = await self.session.execute(
            update(BusinessCaseResponse)
            .where(
                BusinessCaseResponse.application_id == application_id,
                BusinessCaseResponse.video_url.is_not(None),
            )
            .values(video_url=None, video_path=None)
        )
        await self.session.commit()
        return result.rowcount

    async def update_response(self, response_id: str, **fields: Any) -> bool:
        """Apply a partial update to one response. Returns False if it does not exist."""
        result = await self.session.execute(
            update(BusinessCaseResponse)
            .where(BusinessCaseResponse.id == response_id)
            .values(**fields)
        )
        await self.session.commit()
        return result.rowcount > 0
