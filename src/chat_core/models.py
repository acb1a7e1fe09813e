from datetime import datetime, timezone
from typing import Any, Optional, List, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

JSONRPC_VERSION = "2.0"


class MCPRequest(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)


class MCPError(BaseModel):
    code: Optional[int] = None
    message: Optional[str] = None
    data: Optional[Any] = None


class MCPResponse(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[Any] = None
    result: Optional[Any] = None
    error: Optional[MCPError] = None


class ServerInfo(BaseModel):
    name: str = ""
    version: str = ""


class InitializeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    protocol_version: str = Field("", alias="protocolVersion")
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    server_info: ServerInfo = Field(default_factory=ServerInfo, alias="serverInfo")


class Tool(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = Field(None, alias="inputSchema")


class Resource(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uri: str
    name: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")


class ListToolsResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    tools: List[Tool] = Field(default_factory=list)


class ListResourcesResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    resources: List[Resource] = Field(default_factory=list)


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolCallResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(alias="toolCallId")
    result: Any = None


class ChatMessage(BaseModel):
    """One conversation turn; the JSON form uses camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    role: Literal["user", "assistant", "system"]
    content: str = ""
    tool_calls: Optional[List[ToolCall]] = Field(None, alias="toolCalls")
    tool_call_results: Optional[List[ToolCallResult]] = Field(None, alias="toolCallResults")

    @model_validator(mode="after")
    def _results_reference_calls(self):
        if self.tool_call_results:
            known = {call.id for call in self.tool_calls or []}
            for item in self.tool_call_results:
                if item.tool_call_id not in known:
                    raise ValueError(f"tool call result references unknown call id: {item.tool_call_id}")
        return self


class ReasoningStep(BaseModel):
    step_number: int
    description: str
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    input_data: Optional[Dict[str, Any]] = None
    output_data: Optional[Dict[str, Any]] = None


class ModelToolCall(BaseModel):
    """A function invocation as the chat model emits it (arguments still a JSON string)."""

    id: str
    name: str
    arguments: str = ""


class ModelReply(BaseModel):
    content: Optional[str] = None
    tool_calls: List[ModelToolCall] = Field(default_factory=list)


class TurnResult(BaseModel):
    final: ChatMessage
    messages: List[ChatMessage] = Field(default_factory=list)
    reasoning: List[ReasoningStep] = Field(default_factory=list)
    rounds: int = 0
