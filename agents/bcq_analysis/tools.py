"""Tool schema and scorecard normalization for the BCQ analysis agent."""

from typing import Any, Dict, List, Optional


def _score(description: str) -> Dict[str, str]:
    return {"type": "number", "description": f"{description} (0-100)"}


SCORE_RESPONSE = {
    "type": "function",
    "function": {
        "name": "score_response",
        "description": "Provide the content quality and spoken fluency scorecards for one answer",
        "parameters": {
            "type": "object",
            "properties": {
                "content": {
                    "type": "object",
                    "properties": {
                        "quality_score": _score("How well the response addresses the question"),
                        "strengths": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "2-4 specific strengths demonstrated in the response",
                        },
                        "areas_to_probe": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "2-4 areas or follow-up questions to explore in the interview",
                        },
                        "summary": {
                            "type": "string",
                            "description": "Brief 2-3 sentence summary of the response quality",
                        },
                    },
                    "required": ["quality_score", "strengths", "areas_to_probe", "summary"],
                },
                "fluency": {
                    "type": "object",
                    "properties": {
                        "vocabulary_clarity_score": _score("Vocabulary and clarity"),
                        "sentence_flow_score": _score("Sentence flow and pacing of ideas"),
                        "hesitation_score": _score("Fluidity, higher means fewer fillers and restarts"),
                        "grammar_score": _score("Spoken grammar correctness"),
                        "overall_score": _score("Overall English fluency"),
                        "notes": {
                            "type": "string",
                            "description": "2-3 sentences on the speaker's English proficiency",
                        },
                    },
                    "required": [
                        "vocabulary_clarity_score",
                        "sentence_flow_score",
                        "hesitation_score",
                        "grammar_score",
                        "overall_score",
                        "notes",
                    ],
                },
            },
            "required": ["content", "fluency"],
        },
    },
}


def clamp_score(value: Any) -> Optional[float]:
    """Coerce a model-provided score into 0-100. Non-numeric values become None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score:  # NaN
        return None
    return max(0.0, min(100.0, score))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def normalize_content(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "quality_score": clamp_score(raw.get("quality_score")),
        "strengths": _string_list(raw.get("strengths")),
        "areas_to_probe": _string_list(raw.get("areas_to_probe")),
        "summary": str(raw.get("summary") or "").strip(),
    }


def normalize_fluency(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "vocabulary_clarity_score": clamp_score(raw.get("vocabulary_clarity_score")),
        "sentence_flow_score": clamp_score(raw.get("sentence_flow_score")),
        "hesitation_score": clamp_score(raw.get("hesitation_score")),
        "grammar_score": clamp_score(raw.get("grammar_score")),
        "overall_score": clamp_score(raw.get("overall_score")),
        "notes": str(raw.get("notes") or "").strip(),
    }
