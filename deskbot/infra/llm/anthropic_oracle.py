"""
Anthropic Oracle

Claude Messages API with tool use.
"""

import json
import logging
from typing import Any, Optional

from anthropic import APIConnectionError, AsyncAnthropic, RateLimitError

from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.types import (
    OracleResponse,
    Role,
    ToolCall,
    ToolSpec,
    Turn,
)

logger = logging.getLogger(__name__)


def to_anthropic_messages(turns: list[Turn]) -> list[dict[str, Any]]:
    """
    Convert history turns to Messages API format.

    Tool results travel as tool_result blocks inside a user message, and
    consecutive messages with the same role are merged because the API
    requires strict alternation.
    """
    messages: list[dict[str, Any]] = []

    for turn in turns:
        blocks: list[dict[str, Any]] = []
        if turn.role == Role.TOOL:
            role = "user"
            for result in turn.tool_results:
                blocks.append({
                    "type": "tool_result",
                    "tool_use_id": result.call_id,
                    "content": json.dumps(result.content),
                    "is_error": result.is_error,
                })
        else:
            role = turn.role.value
            if turn.text:
                blocks.append({"type": "text", "text": turn.text})
            for call in turn.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": call.id,
                    "name": call.name,
                    "input": call.arguments,
                })

        if not blocks:
            continue

        if messages and messages[-1]["role"] == role:
            messages[-1]["content"].extend(blocks)
        else:
            messages.append({"role": role, "content": blocks})

    return messages


def to_anthropic_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {"name": t.name, "description": t.description, "input_schema": t.parameters}
        for t in tools
    ]


class AnthropicOracle(ChatOracle):
    """
    Async Claude API client wrapper.

    Features:
    - Async API calls
    - Automatic retries with exponential backoff on rate limits and
      connection errors
    - Token counting
    """

    provider = "anthropic"
    retryable_errors = (RateLimitError, APIConnectionError)

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 45.0,
        max_retries: int = 3,
        client: Optional[AsyncAnthropic] = None,
    ):
        if not api_key and client is None:
            raise ValueError("Anthropic API key is required")
        super().__init__(timeout_seconds=timeout_seconds, max_retries=max_retries)
        self._client = client or AsyncAnthropic(api_key=api_key)

    async def _complete(
        self,
        *,
        model: str,
        system: str,
        turns: list[Turn],
        tools: list[ToolSpec],
        max_tokens: int,
        temperature: float,
    ) -> OracleResponse:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": to_anthropic_messages(turns),
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = to_anthropic_tools(tools)

        response = await self._call_with_retry(
            lambda: self._client.messages.create(**kwargs)
        )

        texts: list[str] = []
        calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(block.input)))

        return OracleResponse(
            text="".join(texts).strip(),
            tool_calls=calls,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
            stop_reason=response.stop_reason or "",
        )

    async def close(self) -> None:
        """Close the client."""
        await self._client.close()
