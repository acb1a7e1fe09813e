from .errors import (
    ChatCoreError,
    ModelError,
    ParseError,
    ProtocolError,
    ToolExecutionError,
    TransportError,
)
from .llm_client import LLMClient
from .mcp_client import MCPClient
from .models import ChatMessage, ReasoningStep, Resource, Tool, ToolCall, ToolCallResult, TurnResult
from .orchestrator import Orchestrator

__all__ = [
    "ChatCoreError",
    "ModelError",
    "ParseError",
    "ProtocolError",
    "ToolExecutionError",
    "TransportError",
    "LLMClient",
    "MCPClient",
    "ChatMessage",
    "ReasoningStep",
    "Resource",
    "Tool",
    "ToolCall",
    "ToolCallResult",
    "TurnResult",
    "Orchestrator",
]
