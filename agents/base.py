"""Base agent class for AI gateway agents."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import json
import logging

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from openai.types.chat import ChatCompletion
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from core.config import settings
from core.exceptions import (
    GatewayError,
    GatewayNotConfiguredError,
    GatewayQuotaExhaustedError,
    GatewayRateLimitError,
)

logger = logging.getLogger(__name__)

# Attempts in total when the gateway answers 5xx
MAX_ATTEMPTS = 3


def parse_tool_arguments(completion: ChatCompletion, tool_name: str) -> Dict[str, Any]:
    """Extract the forced tool call's arguments from a chat completion."""
    try:
        tool_call = completion.choices[0].message.tool_calls[0]
        function = tool_call.function
    except (AttributeError, IndexError, TypeError):
        raise GatewayError("AI service returned no tool call")

    if function.name != tool_name:
        raise GatewayError(f"AI service called unexpected tool {function.name!r}")

    try:
        return json.loads(function.arguments)
    except (TypeError, ValueError):
        raise GatewayError("AI service returned malformed tool arguments")


class BaseAgent(ABC):
    """Base class for agents that talk to the OpenAI-compatible AI gateway."""

    def __init__(
        self,
        name: str,
        instructions: str,
        model: Optional[str] = None,
        tools: Optional[list] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        """Initialize the agent.

        Args:
            name: Agent name
            instructions: System instructions for the agent
            model: Gateway model to use (defaults to AI_MODEL)
            tools: Tool schemas the agent may force
            transport: Optional httpx transport (tests pass a MockTransport)
            retry_wait: Tenacity wait strategy between attempts on 5xx responses
        """
        self.name = name
        self.instructions = instructions
        self.model = model or settings.ai_model
        self.tools = tools or []
        self.retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=2)
        self._transport = transport
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the gateway client."""
        if not settings.ai_gateway_api_key:
            raise GatewayNotConfiguredError()

        if self._client is None:
            http_client = None
            if self._transport is not None:
                http_client = httpx.AsyncClient(
                    transport=self._transport,
                    timeout=settings.ai_gateway_timeout_seconds,
                )
            self._client = AsyncOpenAI(
                base_url=settings.ai_gateway_url,
                api_key=settings.ai_gateway_api_key,
                timeout=settings.ai_gateway_timeout_seconds,
                max_retries=0,
                http_client=http_client,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    @abstractmethod
    async def process(self, input_data: Dict[str, Any]) -> Dict[str, Any]:
        """Process input data and return results.

        Args:
            input_data: Input data for the agent

        Returns:
            Processing results
        """
        pass

    def get_tool(self, name: str) -> Dict[str, Any]:
        for tool in self.tools:
            if tool["function"]["name"] == name:
                return tool
        raise ValueError(f"Agent '{self.name}' has no tool '{name}'")

    async def call_tool(self, user_content: Any, tool_name: str) -> Dict[str, Any]:
        """Run one chat completion that must answer through ``tool_name``.

        Args:
            user_content: User message content (text or multimodal parts)
            tool_name: Tool the model is forced to call

        Returns:
            Parsed tool arguments
        """
        tool = self.get_tool(tool_name)
        client = self._get_client()

        try:
            completion = await self._complete(client, user_content, tool, tool_name)
        except RateLimitError as e:
            raise GatewayRateLimitError() from e
        except APIStatusError as e:
            if e.status_code == 402:
                raise GatewayQuotaExhaustedError() from e
            logger.error(f"{self.name}: AI gateway error {e.status_code}: {e.message}")
            raise GatewayError(
                f"AI service request failed ({e.status_code}). Please try again."
            ) from e
        except APIConnectionError as e:
            logger.error(f"{self.name}: AI gateway unreachable: {e}")
            raise GatewayError("AI service is unreachable. Please try again.") from e

        return parse_tool_arguments(completion, tool_name)

    async def _complete(
        self,
        client: AsyncOpenAI,
        user_content: Any,
        tool: Dict[str, Any],
        tool_name: str,
    ) -> ChatCompletion:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(InternalServerError),
            stop=stop_after_attempt(MAX_ATTEMPTS),
            wait=self.retry_wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": self.instructions},
                        {"role": "user", "content": user_content},
                    ],
                    tools=[tool],
                    tool_choice={"type": "function", "function": {"name": tool_name}},
                )
