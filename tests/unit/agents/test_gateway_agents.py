"""Tests for the AI gateway agents, using httpx.MockTransport in place of the network."""

import base64
import json

import httpx
import pytest
from openai.types.chat import ChatCompletion
from tenacity import wait_none

from agents import registry
from agents.base import MAX_ATTEMPTS, parse_tool_arguments
from agents.bcq_analysis.agent import BCQAnalysisAgent
from agents.bcq_analysis.tools import clamp_score
from agents.registry import AgentRegistry
from agents.transcription.agent import TranscriptionAgent
from core.config import settings
from core.exceptions import (
    GatewayError,
    GatewayNotConfiguredError,
    GatewayQuotaExhaustedError,
    GatewayRateLimitError,
)


def completion_body(message: dict, finish_reason: str = "stop") -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "google/gemini-2.5-flash",
        "choices": [{"index": 0, "finish_reason": finish_reason, "message": message}],
    }


def tool_call_body(name: str, arguments: dict) -> dict:
    return completion_body(
        {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": name, "arguments": json.dumps(arguments)},
                }
            ],
        },
        finish_reason="tool_calls",
    )


class ScriptedGateway:
    """Answers each request with the next scripted response."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def transcription_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json=tool_call_body("submit_transcription", {"transcription": text}))


class TestTranscriptionAgent:

    @pytest.mark.asyncio
    async def test_sends_media_as_data_url(self):
        gateway = ScriptedGateway(transcription_reply("  We should enter Brazil first.  "))
        agent = TranscriptionAgent(transport=gateway.transport, retry_wait=wait_none())

        text = await agent.transcribe(b"audio-bytes", "audio/webm", "pt")
        await agent.aclose()

        assert text == "We should enter Brazil first."
        request = gateway.requests[0]
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["authorization"] == "Bearer test-gateway-key"

        payload = json.loads(request.content)
        assert payload["tool_choice"]["function"]["name"] == "submit_transcription"
        parts = payload["messages"][1]["content"]
        encoded = base64.b64encode(b"audio-bytes").decode()
        assert parts[1]["image_url"]["url"] == f"data:audio/webm;base64,{encoded}"
        assert "Portuguese" in parts[0]["text"]

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self):
        gateway = ScriptedGateway(httpx.Response(429, json={"error": "slow down"}))
        agent = TranscriptionAgent(transport=gateway.transport, retry_wait=wait_none())

        with pytest.raises(GatewayRateLimitError):
            await agent.transcribe(b"audio", "audio/webm")
        assert len(gateway.requests) == 1

    @pytest.mark.asyncio
    async def test_quota_exhausted(self):
        gateway = ScriptedGateway(httpx.Response(402, json={"error": "credits"}))
        agent = TranscriptionAgent(transport=gateway.transport, retry_wait=wait_none())

        with pytest.raises(GatewayQuotaExhaustedError):
            await agent.transcribe(b"audio", "audio/webm")

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        gateway = ScriptedGateway(
            httpx.Response(500, text="upstream"),
            httpx.Response(503, text="upstream"),
            transcription_reply("Third time lucky"),
        )
        agent = TranscriptionAgent(transport=gateway.transport, retry_wait=wait_none())

        assert await agent.transcribe(b"audio", "audio/webm") == "Third time lucky"
        assert len(gateway.requests) == MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self):
        gateway = ScriptedGateway(*[httpx.Response(500, json={"error": {"message": "boom"}}) for _ in range(3)])
        agent = TranscriptionAgent(transport=gateway.transport, retry_wait=wait_none())

        with pytest.raises(GatewayError) as exc_info:
            await agent.transcribe(b"audio", "audio/webm")
        assert "500" in exc_info.value.message
        assert len(gateway.requests) == MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_unreachable_gateway(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        agent = TranscriptionAgent(transport=httpx.MockTransport(refuse), retry_wait=wait_none())
        with pytest.raises(GatewayError):
            await agent.transcribe(b"audio", "audio/webm")

    @pytest.mark.asyncio
    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "ai_gateway_api_key", None)
        agent = TranscriptionAgent(transport=ScriptedGateway().transport)

        with pytest.raises(GatewayNotConfiguredError):
            await agent.transcribe(b"audio", "audio/webm")


class TestAnalysisAgent:

    @pytest.mark.asyncio
    async def test_scores_are_normalized(self):
        arguments = {
            "content": {
                "quality_score": 140,
                "strengths": ["Structured", "  ", "Quantified"],
                "areas_to_probe": "not a list",
                "summary": " Solid answer. ",
            },
            "fluency": {
                "vocabulary_clarity_score": "71",
                "sentence_flow_score": -5,
                "hesitation_score": True,
                "grammar_score": 90,
                "overall_score": 80.5,
                "notes": "Clear.",
            },
        }
        gateway = ScriptedGateway(httpx.Response(200, json=tool_call_body("score_response", arguments)))
        agent = BCQAnalysisAgent(transport=gateway.transport, retry_wait=wait_none())

        result = await agent.process({"question": "How would you price it?", "transcription": "By value."})

        assert result["content"] == {
            "quality_score": 100.0,
            "strengths": ["Structured", "Quantified"],
            "areas_to_probe": [],
            "summary": "Solid answer.",
        }
        assert result["fluency"]["vocabulary_clarity_score"] == 71.0
        assert result["fluency"]["sentence_flow_score"] == 0.0
        assert result["fluency"]["hesitation_score"] is None
        payload = json.loads(gateway.requests[0].content)
        assert "How would you price it?" in payload["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_incomplete_scorecard(self):
        gateway = ScriptedGateway(
            httpx.Response(200, json=tool_call_body("score_response", {"content": {"quality_score": 50}}))
        )
        agent = BCQAnalysisAgent(transport=gateway.transport, retry_wait=wait_none())

        with pytest.raises(GatewayError):
            await agent.process({"question": "Q", "transcription": "A"})


class TestToolParsing:

    def test_wrong_tool_name(self):
        completion = ChatCompletion.model_validate(tool_call_body("other_tool", {}))
        with pytest.raises(GatewayError):
            parse_tool_arguments(completion, "score_response")

    def test_no_tool_call(self):
        completion = ChatCompletion.model_validate(completion_body({"role": "assistant", "content": "hello"}))
        with pytest.raises(GatewayError):
            parse_tool_arguments(completion, "score_response")

    def test_malformed_arguments(self):
        body = tool_call_body("score_response", {})
        body["choices"][0]["message"]["tool_calls"][0]["function"]["arguments"] = "{not json"
        with pytest.raises(GatewayError):
            parse_tool_arguments(ChatCompletion.model_validate(body), "score_response")

    @pytest.mark.parametrize("value,expected", [
        (55, 55.0),
        ("12.5", 12.5),
        (101, 100.0),
        (-1, 0.0),
        (None, None),
        (False, None),
        ("n/a", None),
        (float("nan"), None),
    ])
    def test_clamp_score(self, value, expected):
        assert clamp_score(value) == expected


class TestRegistry:

    def test_builtin_agents_registered(self):
        assert {"transcription", "bcq_analysis"} <= set(registry.list_agents())

    def test_get_shares_and_create_does_not(self):
        local = AgentRegistry()
        local.register("transcription", TranscriptionAgent)

        assert local.get("transcription") is local.get("transcription")
        assert local.create("transcription") is not local.get("transcription")

    def test_conflicting_registration(self):
        local = AgentRegistry()
        local.register("transcription", TranscriptionAgent)
        with pytest.raises(ValueError):
            local.register("transcription", BCQAnalysisAgent)

    def test_unknown_agent(self):
        with pytest.raises(ValueError):
            AgentRegistry().get("screening")
