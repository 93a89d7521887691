"""
Language-model oracle.

Provider-neutral chat interface with tool calling. One implementation is
chosen at startup from settings and injected into every component that
needs model output.
"""

from deskbot.infra.llm.base import ChatOracle
from deskbot.infra.llm.factory import build_oracle
from deskbot.infra.llm.types import (
    OracleError,
    OracleResponse,
    Role,
    ToolCall,
    ToolResult,
    ToolSpec,
    Turn,
)

__all__ = [
    "ChatOracle",
    "build_oracle",
    "OracleError",
    "OracleResponse",
    "Role",
    "ToolCall",
    "ToolResult",
    "ToolSpec",
    "Turn",
]
