"""
Agents package for AI gateway agents.

Each agent follows a consistent structure with agent.py, tools.py, and
prompts.py and registers itself with the shared registry on import.
"""

from agents.registry import registry, register_agent
from agents.base import BaseAgent

# Import all agents to register them
from agents.transcription.agent import TranscriptionAgent
from agents.bcq_analysis.agent import BCQAnalysisAgent

__all__ = [
    "registry",
    "register_agent",
    "BaseAgent",
    "TranscriptionAgent",
    "BCQAnalysisAgent",
]
