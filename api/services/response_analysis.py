"""Content and fluency analysis of a stored BCQ response."""

from typing import Any, Dict
import logging

from agents.bcq_analysis.agent import BCQAnalysisAgent
from api.services.business_cases import BCQRepository
from core.exceptions import BCQError, MissingTranscriptError, ResponseNotFoundError
from database.models import ContentAnalysisStatus

logger = logging.getLogger(__name__)


def scorecard_fields(result: Dict[str, Any]) -> Dict[str, Any]:
    """Map the agent's two scorecards onto ``business_case_responses`` columns."""
    content = result["content"]
    fluency = result["fluency"]
    return {
        "content_quality_score": content["quality_score"],
        "content_strengths": content["strengths"],
        "content_areas_to_probe": content["areas_to_probe"],
        "content_summary": content["summary"],
        "fluency_pronunciation_score": fluency["vocabulary_clarity_score"],
        "fluency_pace_score": fluency["sentence_flow_score"],
        "fluency_hesitation_score": fluency["hesitation_score"],
        "fluency_grammar_score": fluency["grammar_score"],
        "fluency_overall_score": fluency["overall_score"],
        "fluency_notes": fluency["notes"],
    }


class ResponseAnalysisService:
    """
    Scores one response and records the outcome on its row.

    The row's ``content_analysis_status`` goes ``analyzing`` then either
    ``completed`` or ``failed``. A failure never touches the video or the
    transcript.
    """

    def __init__(self, agent: BCQAnalysisAgent, repo: BCQRepository):
        self.agent = agent
        self.repo = repo

    async def analyze(self, response_id: str) -> Dict[str, Any]:
        """
        Analyze a response by id.

        Returns:
            Content scorecard fields plus ``fluency_analysis``

        Raises:
            ResponseNotFoundError: Unknown response
            MissingTranscriptError: The response has no transcript yet
            GatewayError: Upstream failure
        """
        response = await self.repo.get_response(response_id)
        if response is None:
            raise ResponseNotFoundError()

        transcription = (response.transcription or "").strip()
        if not transcription:
            error = MissingTranscriptError()
            await self._mark_failed(response_id, error.message)
            raise error

        await self.repo.update_response(
            response_id,
            content_analysis_status=ContentAnalysisStatus.ANALYZING,
            content_analysis_error=None,
        )
        logger.info(f"Analyzing BCQ response {response_id} ({len(transcription)} characters)")

        try:
            result = await self.agent.process(
                {
                    "question": response.business_case.prompt_text,
                    "transcription": transcription,
                }
            )
            await self.repo.update_response(
                response_id,
                **scorecard_fields(result),
                content_analysis_status=ContentAnalysisStatus.COMPLETED,
                content_analysis_error=None,
            )
        except Exception as e:
            message = e.message if isinstance(e, BCQError) else f"{type(e).__name__}: {e}"
            await self._mark_failed(response_id, message)
            raise

        logger.info(f"Analysis completed for BCQ response {response_id}")
        content = result["content"]
        return {
            "quality_score": content["quality_score"],
            "strengths": content["strengths"],
            "areas_to_probe": content["areas_to_probe"],
            "summary": content["summary"],
            "fluency_analysis": result["fluency"],
        }

    async def _mark_failed(self, response_id: str, message: str) -> None:
        try:
            await self.repo.update_response(
                response_id,
                content_analysis_status=ContentAnalysisStatus.FAILED,
                content_analysis_error=message[:1000],
            )
        except Exception:
            logger.error(
                f"Failed to record analysis failure for response {response_id}", exc_info=True
            )
