"""Agent registry for looking up the gateway agents by name."""

from typing import Dict, Type
import logging

from agents.base import BaseAgent

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Registry of agent classes with one shared instance per agent."""

    def __init__(self):
        self._agents: Dict[str, Type[BaseAgent]] = {}
        self._instances: Dict[str, BaseAgent] = {}

    def register(self, name: str, agent_class: Type[BaseAgent]):
        if name in self._agents and self._agents[name] is not agent_class:
            raise ValueError(f"Agent '{name}' already registered")
        self._agents[name] = agent_class

    def get(self, name: str) -> BaseAgent:
        """Get the shared instance, creating it on first use.

        Raises:
            ValueError: Unknown agent name
        """
        if name not in self._instances:
            self._instances[name] = self.create(name)
        return self._instances[name]

    def create(self, name: str, **kwargs) -> BaseAgent:
        """Build a fresh, unshared instance (e.g. with a test transport)."""
        if name not in self._agents:
            raise ValueError(f"Agent '{name}' not registered")
        return self._agents[name](**kwargs)

    def list_agents(self) -> list[str]:
        return list(self._agents.keys())

    async def aclose(self) -> None:
        """Close the HTTP clients of every shared instance."""
        for name, agent in self._instances.items():
            await agent.aclose()
            logger.debug(f"Closed agent '{name}'")
        self._instances.clear()


# Global registry instance
registry = AgentRegistry()


def register_agent(name: str):
    """Decorator to register an agent class under ``name``."""

    def decorator(cls: Type[BaseAgent]):
        registry.register(name, cls)
        return cls

    return decorator
