"""
Chat Oracle Base

Shared deadline and retry handling for provider implementations.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from deskbot.infra.llm.types import OracleError, OracleResponse, ToolSpec, Turn

logger = logging.getLogger(__name__)


class ChatOracle(ABC):
    """
    Provider-neutral chat completion with tool calling.

    Subclasses implement _complete() and declare which provider exceptions
    are worth retrying. Every call runs under a hard deadline; a timeout is
    reported as OracleError like any other exhausted failure.
    """

    provider: str = "base"
    retryable_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, timeout_seconds: float = 45.0, max_retries: int = 3):
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries

    async def complete(
        self,
        *,
        model: str,
        system: str,
        turns: list[Turn],
        tools: Optional[list[ToolSpec]] = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
    ) -> OracleResponse:
        """
        Run one model round-trip.

        Args:
            model: Provider model name
            system: System prompt
            turns: Conversation so far, oldest first
            tools: Tool declarations the model may call
            max_tokens: Output token cap
            temperature: Sampling temperature

        Returns:
            OracleResponse with text, tool calls, and token usage

        Raises:
            OracleError: On timeout or when retries are exhausted
        """
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self._complete(
                    model=model,
                    system=system,
                    turns=turns,
                    tools=tools or [],
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise OracleError(
                f"{self.provider} call exceeded {self.timeout_seconds}s deadline"
            ) from e
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"{self.provider} call failed: {e}") from e

        response.latency_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"{self.provider} {model}: in={response.input_tokens} "
            f"out={response.output_tokens} tools={len(response.tool_calls)} "
            f"latency={response.latency_ms:.0f}ms"
        )
        return response

    async def _call_with_retry(self, call: Callable[[], Awaitable[Any]]) -> Any:
        """Call API with exponential backoff retry."""
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_retries):
            try:
                return await call()
            except self.retryable_errors as e:
                last_error = e
                wait_time = 2 ** attempt
                logger.warning(
                    f"{self.provider} transient error ({type(e).__name__}), "
                    f"retrying in {wait_time}s (attempt {attempt + 1})"
                )
                await asyncio.sleep(wait_time)

        raise OracleError(f"Max retries exceeded: {last_error}")

    @abstractmethod
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
        """Provider-specific round-trip."""

    async def close(self) -> None:
        """Release the underlying HTTP client."""
