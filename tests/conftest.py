import json
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from chat_core.mcp_client import MCPClient
from chat_core.models import ModelReply, ModelToolCall, Tool

SERVER_URL = "https://mcp.test/mcp"


class FakeMCPServer:
    """In-process MCP endpoint served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handlers: Dict[str, Callable[[Dict[str, Any]], httpx.Response]] = {}

    @property
    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def on(self, method: str, handler: Callable[[Dict[str, Any]], httpx.Response]) -> None:
        self.handlers[method] = handler

    def result(self, method: str, result: Any) -> None:
        self.on(method, lambda body: httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": result}
        ))

    def error(self, method: str, code: int, message: str) -> None:
        self.on(method, lambda body: httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": code, "message": message}}
        ))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        handler = self.handlers.get(body["method"])
        if handler is None:
            return httpx.Response(200, json={
                "jsonrpc": "2.0",
                "id": body["id"],
                "error": {"code": -32601, "message": f"Method not found: {body['method']}"}
            })
        return handler(body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class ScriptedLLM:
    """Chat model double that replays queued replies and records every request."""

    def __init__(self, replies: List[ModelReply]) -> None:
        self.complete = AsyncMock(side_effect=replies)

    @property
    def calls(self) -> List[Dict[str, Any]]:
        return [call.kwargs | {"messages": call.args[0]} for call in self.complete.await_args_list]


def tool_call(call_id: str, name: str, arguments: str) -> ModelToolCall:
    return ModelToolCall(id=call_id, name=name, arguments=arguments)


def reply(content: Optional[str] = None, *calls: ModelToolCall) -> ModelReply:
    return ModelReply(content=content, tool_calls=list(calls))


@pytest.fixture
def mcp_server() -> FakeMCPServer:
    return FakeMCPServer()


@pytest.fixture
def mcp_client(mcp_server: FakeMCPServer) -> MCPClient:
    return MCPClient(SERVER_URL, "secret-key", transport=mcp_server.transport)


@pytest.fixture
def schedule_tool() -> Tool:
    return Tool(
        name="getResourceSchedule",
        description="Get the schedule of a resource",
        inputSchema={
            "type": "object",
            "properties": {"resourceId": {"type": "string"}},
            "required": ["resourceId"],
        },
    )
