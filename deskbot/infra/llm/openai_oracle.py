"""
OpenAI Oracle

Chat Completions API with function calling. Also serves OpenAI-compatible
gateways through base_url.
"""

import json
import logging
from typing import Any, Optional

from openai import APIConnectionError, AsyncOpenAI, RateLimitError

from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.types import (
    OracleResponse,
    Role,
    ToolCall,
    ToolSpec,
    Turn,
)

logger = logging.getLogger(__name__)


def to_openai_messages(system: str, turns: list[Turn]) -> list[dict[str, Any]]:
    """Convert history turns to Chat Completions format."""
    messages: list[dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})

    for turn in turns:
        match turn.role:
            case Role.USER:
                messages.append({"role": "user", "content": turn.text})
            case Role.ASSISTANT:
                message: dict[str, Any] = {"role": "assistant", "content": turn.text or None}
                if turn.tool_calls:
                    message["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments),
                            },
                        }
                        for call in turn.tool_calls
                    ]
                messages.append(message)
            case Role.TOOL:
                for result in turn.tool_results:
                    messages.append({
                        "role": "tool",
                        "tool_call_id": result.call_id,
                        "content": json.dumps(result.content),
                    })

    return messages


def to_openai_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters,
            },
        }
        for t in tools
    ]


def parse_arguments(raw: Optional[str]) -> dict[str, Any]:
    """Decode function-call arguments; malformed JSON becomes an empty dict."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Model returned malformed tool arguments: {raw[:200]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class OpenAIOracle(ChatOracle):
    """Async OpenAI client wrapper with retries on rate limits and connection errors."""

    provider = "openai"
    retryable_errors = (RateLimitError, APIConnectionError)

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_seconds: float = 45.0,
        max_retries: int = 3,
        client: Optional[AsyncOpenAI] = None,
    ):
        if not api_key and client is None:
            raise ValueError("OpenAI API key is required")
        super().__init__(timeout_seconds=timeout_seconds, max_retries=max_retries)
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)

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
            "messages": to_openai_messages(system, turns),
        }
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
            kwargs["tool_choice"] = "auto"

        response = await self._call_with_retry(
            lambda: self._client.chat.completions.create(**kwargs)
        )

        choice = response.choices[0]
        message = choice.message
        calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=parse_arguments(tc.function.arguments),
            )
            for tc in (message.tool_calls or [])
        ]
        usage = response.usage

        return OracleResponse(
            text=(message.content or "").strip(),
            tool_calls=calls,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=model,
            stop_reason=choice.finish_reason or "",
        )

    async def close(self) -> None:
        """Close the client."""
        await self._client.close()
