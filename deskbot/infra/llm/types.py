"""
Oracle Types

Provider-neutral message and response records. Turns are stored verbatim
in conversation history, so they round-trip through plain dicts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OracleError(Exception):
    """Raised when a model call fails after retries or exceeds its deadline."""
    pass


class Role(str, Enum):
    """Author of a turn."""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        return cls(id=data["id"], name=data["name"], arguments=data.get("arguments") or {})


@dataclass
class ToolResult:
    """Result of one tool call, sent back to the model."""
    call_id: str
    name: str
    content: dict[str, Any]

    @property
    def is_error(self) -> bool:
        return "error" in self.content

    def to_dict(self) -> dict[str, Any]:
        return {"call_id": self.call_id, "name": self.name, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolResult":
        return cls(call_id=data["call_id"], name=data["name"], content=data.get("content") or {})


@dataclass
class Turn:
    """
    One history record.

    A user turn carries text. An assistant turn carries text and/or tool
    calls. A tool turn carries the results of the previous assistant
    turn's tool calls.
    """
    role: Role
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role=Role.USER, text=text)

    @classmethod
    def assistant(cls, text: str, tool_calls: list[ToolCall] | None = None) -> "Turn":
        return cls(role=Role.ASSISTANT, text=text, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, results: list[ToolResult]) -> "Turn":
        return cls(role=Role.TOOL, tool_results=list(results))

    @property
    def is_plain_user(self) -> bool:
        """True for a user turn that is not answering a tool call."""
        return self.role == Role.USER

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role.value, "text": self.text}
        if self.tool_calls:
            data["tool_calls"] = [c.to_dict() for c in self.tool_calls]
        if self.tool_results:
            data["tool_results"] = [r.to_dict() for r in self.tool_results]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Turn":
        return cls(
            role=Role(data["role"]),
            text=data.get("text", ""),
            tool_calls=[ToolCall.from_dict(c) for c in data.get("tool_calls", [])],
            tool_results=[ToolResult.from_dict(r) for r in data.get("tool_results", [])],
        )


@dataclass(frozen=True)
class ToolSpec:
    """Tool declaration with a JSON-schema parameter object."""
    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class OracleResponse:
    """Response from one model round-trip."""
    text: str
    tool_calls: list[ToolCall]
    input_tokens: int
    output_tokens: int
    model: str
    stop_reason: str = ""
    latency_ms: float = 0.0

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)
