"""Tests for the provider oracles."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from anthropic import APIConnectionError as AnthropicConnectionError

from deskbot.config import Settings
from deskbot.infra.llm import build_oracle
from deskbot.infra.llm.anthropic_oracle import AnthropicOracle, to_anthropic_messages
from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.openai_oracle import OpenAIOracle, parse_arguments, to_openai_messages
from deskbot.infra.llm.types import OracleError, ToolCall, ToolResult, ToolSpec, Turn

CALL = ToolCall(id="call_1", name="get_available_slots", arguments={"date": "2025-11-25"})

HISTORY = [
    Turn.user("book tomorrow"),
    Turn.assistant("Let me check.", [CALL]),
    Turn.tool([ToolResult("call_1", "get_available_slots", {"available_slots": ["09:00"]})]),
]


class TestAnthropicMessages:
    """Test conversion to the Messages API format."""

    def test_tool_round_trip(self):
        messages = to_anthropic_messages(HISTORY)

        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[1]["content"] == [
            {"type": "text", "text": "Let me check."},
            {"type": "tool_use", "id": "call_1", "name": "get_available_slots", "input": {"date": "2025-11-25"}},
        ]
        result = messages[2]["content"][0]
        assert result["type"] == "tool_result"
        assert result["tool_use_id"] == "call_1"
        assert json.loads(result["content"]) == {"available_slots": ["09:00"]}
        assert result["is_error"] is False

    def test_error_result_flagged(self):
        messages = to_anthropic_messages([
            Turn.tool([ToolResult("c", "book_appointment", {"error": "slot taken"})]),
        ])
        assert messages[0]["content"][0]["is_error"] is True

    def test_tool_turn_then_user_merged(self):
        """A saved tool turn followed by the next customer message stays alternating."""
        messages = to_anthropic_messages(HISTORY + [Turn.user("14:00 please")])

        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert [b["type"] for b in messages[2]["content"]] == ["tool_result", "text"]

    def test_empty_turns_skipped(self):
        messages = to_anthropic_messages([Turn.user("hi"), Turn.assistant("")])
        assert messages == [{"role": "user", "content": [{"type": "text", "text": "hi"}]}]


class TestOpenAIMessages:
    """Test conversion to the Chat Completions format."""

    def test_tool_round_trip(self):
        messages = to_openai_messages("system prompt", HISTORY)

        assert messages[0] == {"role": "system", "content": "system prompt"}
        assert messages[1] == {"role": "user", "content": "book tomorrow"}
        call = messages[2]["tool_calls"][0]
        assert call["id"] == "call_1"
        assert json.loads(call["function"]["arguments"]) == {"date": "2025-11-25"}
        assert messages[3]["role"] == "tool"
        assert messages[3]["tool_call_id"] == "call_1"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ('{"date": "2025-11-25"}', {"date": "2025-11-25"}),
            ("", {}),
            (None, {}),
            ("{not json", {}),
            ("[1, 2]", {}),
        ],
    )
    def test_parse_arguments(self, raw, expected):
        assert parse_arguments(raw) == expected


def anthropic_response(*blocks, input_tokens=120, output_tokens=30):
    return SimpleNamespace(
        content=list(blocks),
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
        stop_reason="end_turn",
    )


class TestAnthropicOracle:
    """Test the Claude client wrapper."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.messages.create = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_complete_parses_text_and_tools(self, client):
        client.messages.create.return_value = anthropic_response(
            SimpleNamespace(type="text", text="Checking now."),
            SimpleNamespace(type="tool_use", id="toolu_1", name="get_available_slots", input={"date": "2025-11-25"}),
        )
        oracle = AnthropicOracle(api_key="k", client=client)

        response = await oracle.complete(
            model="claude-test",
            system="You are helpful",
            turns=[Turn.user("book tomorrow")],
            tools=[ToolSpec("get_available_slots", "Get slots", {"type": "object"})],
            max_tokens=512,
        )

        assert response.text == "Checking now."
        assert response.tool_calls == [
            ToolCall(id="toolu_1", name="get_available_slots", arguments={"date": "2025-11-25"})
        ]
        assert (response.input_tokens, response.output_tokens) == (120, 30)
        assert response.wants_tools

        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "You are helpful"
        assert kwargs["max_tokens"] == 512
        assert kwargs["tools"][0]["input_schema"] == {"type": "object"}

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, client):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create.side_effect = [
            AnthropicConnectionError(request=request),
            anthropic_response(SimpleNamespace(type="text", text="Hi")),
        ]
        oracle = AnthropicOracle(api_key="k", max_retries=3, client=client)

        with patch("deskbot.infra.llm.base.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await oracle.complete(model="m", system="", turns=[Turn.user("hi")])

        assert response.text == "Hi"
        assert client.messages.create.await_count == 2
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, client):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        client.messages.create.side_effect = AnthropicConnectionError(request=request)
        oracle = AnthropicOracle(api_key="k", max_retries=3, client=client)

        with patch("deskbot.infra.llm.base.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(OracleError, match="Max retries exceeded"):
                await oracle.complete(model="m", system="", turns=[Turn.user("hi")])

        assert client.messages.create.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_error_wrapped(self, client):
        client.messages.create.side_effect = ValueError("bad request")
        oracle = AnthropicOracle(api_key="k", client=client)

        with pytest.raises(OracleError, match="bad request"):
            await oracle.complete(model="m", system="", turns=[Turn.user("hi")])
        assert client.messages.create.await_count == 1

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            AnthropicOracle(api_key="")


class TestOpenAIOracle:
    """Test the OpenAI client wrapper."""

    @pytest.mark.asyncio
    async def test_complete_parses_tool_calls(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(
                message=SimpleNamespace(
                    content=None,
                    tool_calls=[SimpleNamespace(
                        id="call_9",
                        function=SimpleNamespace(name="book_appointment", arguments='{"time": "14:00"}'),
                    )],
                ),
                finish_reason="tool_calls",
            )],
            usage=SimpleNamespace(prompt_tokens=300, completion_tokens=25),
        ))
        oracle = OpenAIOracle(api_key="k", client=client)

        response = await oracle.complete(
            model="gpt-test",
            system="sys",
            turns=[Turn.user("2pm")],
            tools=[ToolSpec("book_appointment", "Book", {"type": "object"})],
        )

        assert response.text == ""
        assert response.tool_calls == [ToolCall(id="call_9", name="book_appointment", arguments={"time": "14:00"})]
        assert (response.input_tokens, response.output_tokens) == (300, 25)
        assert response.stop_reason == "tool_calls"

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}


class SlowOracle(ChatOracle):
    provider = "slow"

    async def _complete(self, **kwargs):
        await asyncio.sleep(1)


class TestDeadline:
    @pytest.mark.asyncio
    async def test_timeout_becomes_oracle_error(self):
        oracle = SlowOracle(timeout_seconds=0.01)

        with pytest.raises(OracleError, match="deadline"):
            await oracle.complete(model="m", system="", turns=[Turn.user("hi")])


class TestBuildOracle:
    """Test provider selection."""

    def test_anthropic(self):
        oracle = build_oracle(Settings(llm_provider="anthropic", anthropic_api_key="k"))
        assert isinstance(oracle, AnthropicOracle)

    def test_openai(self):
        oracle = build_oracle(Settings(llm_provider="openai", openai_api_key="k"))
        assert isinstance(oracle, OpenAIOracle)

    def test_missing_key(self):
        with pytest.raises(ValueError):
            build_oracle(Settings(llm_provider="openai", openai_api_key=None))
