"""BCQ analysis agent: scores an answer transcript for content and fluency."""

from typing import Any, Dict
import logging

from agents.base import BaseAgent
from agents.registry import register_agent
from agents.bcq_analysis.prompts import ANALYSIS_SYSTEM_PROMPT, ANALYSIS_USER_PROMPT
from agents.bcq_analysis.tools import (
    SCORE_RESPONSE,
    normalize_content,
    normalize_fluency,
)
from core.exceptions import GatewayError

logger = logging.getLogger(__name__)


@register_agent("bcq_analysis")
class BCQAnalysisAgent(BaseAgent):
    """Agent producing the content and fluency scorecards in one call."""

    def __init__(self, **kwargs):
        super().__init__(
            name="bcq_analysis",
            instructions=ANALYSIS_SYSTEM_PROMPT,
            tools=[SCORE_RESPONSE],
            **kwargs,
        )

    async def process(self, input_data: Dict[str, Any]) -> Dict[str, Any]:
        """Score one answer.

        Args:
            input_data: Dictionary with 'question' and 'transcription'

        Returns:
            Dictionary with normalized 'content' and 'fluency' scorecards
        """
        prompt = ANALYSIS_USER_PROMPT.format(
            question=input_data["question"],
            transcription=input_data["transcription"],
        )
        arguments = await self.call_tool(prompt, "score_response")

        content = arguments.get("content")
        fluency = arguments.get("fluency")
        if not isinstance(content, dict) or not isinstance(fluency, dict):
            raise GatewayError("AI service returned an incomplete scorecard")

        result = {
            "content": normalize_content(content),
            "fluency": normalize_fluency(fluency),
        }
        logger.info(
            f"Scored response: content={result['content']['quality_score']}, "
            f"fluency={result['fluency']['overall_score']}"
        )
        return result
