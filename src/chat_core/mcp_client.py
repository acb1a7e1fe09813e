import json
import logging
import re
import threading
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from .config import DEFAULT_HTTP_TIMEOUT
from .errors import ParseError, ProtocolError, TransportError
from .models import (
    InitializeResult,
    ListResourcesResult,
    ListToolsResult,
    MCPRequest,
    MCPResponse,
)

logger = logging.getLogger("mcp_client")

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "mcp-chat-service", "version": "1.0.0"}

METHOD_NOT_FOUND = -32601
# Legacy servers only report "method not found" in the message text
METHOD_NOT_FOUND_MARKERS = ("not available", "Method", "-32601")

SSE_CONTENT_TYPES = ("text/event-stream", "text/plain")
SSE_SKIPPED_FIELDS = ("event:", "id:", "retry:")


def parse_sse_body(text: str) -> str:
    """Concatenate the `data:` payloads of an SSE-framed body.

    Stray lines that are not SSE fields are kept as raw JSON fragments.
    A body without any payload is returned unchanged.
    """
    payload = []
    for line in text.splitlines():
        if not line.strip() or line.startswith(":"):
            continue
        if line.startswith("data:"):
            data = line[len("data:"):]
            payload.append(data[1:] if data.startswith(" ") else data)
        elif line.startswith(SSE_SKIPPED_FIELDS):
            continue
        else:
            payload.append(line)

    return "".join(payload) or text


def decode_json_body(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    raise ParseError(text)


def is_method_not_found(error: Exception) -> bool:
    if not isinstance(error, ProtocolError):
        return False
    if error.code == METHOD_NOT_FOUND:
        return True
    message = str(error)
    return any(marker in message for marker in METHOD_NOT_FOUND_MARKERS)


class MCPClient:
    """JSON-RPC client for a single MCP endpoint reached over HTTP POST."""

    def __init__(
            self,
            server_url: str,
            api_key: Optional[str] = None,
            timeout: float = DEFAULT_HTTP_TIMEOUT,
            transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.server_url = server_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._request_id = 0
        self._id_lock = threading.Lock()

    def set_api_key(self, api_key: Optional[str]):
        self.api_key = api_key

    def _next_request_id(self) -> int:
        with self._id_lock:
            self._request_id += 1
            return self._request_id

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-KEY"] = self.api_key
        return headers

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Send one JSON-RPC request and return its `result` member."""
        req = MCPRequest(id=self._next_request_id(), method=method, params=params or {})

        logger.debug("MCP request", extra={"method": method, "request_id": req.id})

        try:
            async with httpx.AsyncClient(
                    timeout=self.timeout,
                    transport=self._transport,
                    follow_redirects=True
            ) as client:
                resp = await client.post(
                    self.server_url,
                    content=req.model_dump_json(),
                    headers=self._headers()
                )

            if not resp.is_success:
                raise TransportError(resp.status_code)

            content_type = resp.headers.get("content-type", "")
            text = resp.text
            if any(kind in content_type for kind in SSE_CONTENT_TYPES):
                text = parse_sse_body(text)

            data = decode_json_body(text)
            if not isinstance(data, dict):
                raise ProtocolError("MCP response is not a JSON-RPC object")

            error = data.get("error")
            if error is not None and not isinstance(error, dict):
                raise ProtocolError(str(error) or "MCP server error")

            try:
                envelope = MCPResponse.model_validate(data)
            except ValidationError as e:
                if error is not None:
                    code = error.get("code")
                    raise ProtocolError(
                        str(error.get("message") or "MCP server error"),
                        code=code if isinstance(code, int) else None,
                        data=error.get("data")
                    ) from e
                raise ProtocolError(f"Malformed MCP response: {e.errors()[0].get('msg', '')}") from e

            if envelope.error is not None:
                raise ProtocolError(
                    envelope.error.message or "MCP server error",
                    code=envelope.error.code,
                    data=envelope.error.data
                )

            if "result" not in data:
                raise ProtocolError("No result in MCP response")

            return envelope.result

        except Exception as e:
            logger.error("MCP request failed", extra={
                "method": method,
                "request_id": req.id,
                "error_type": type(e).__name__,
                "error": str(e)
            })
            raise

    @staticmethod
    def _with_server(params: Dict[str, Any], server: Optional[str]) -> Dict[str, Any]:
        if server:
            params["server"] = server
        return params

    async def initialize(self) -> InitializeResult:
        result = await self.request("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": dict(CLIENT_INFO)
        })
        info = InitializeResult.model_validate(result or {})

        logger.info("MCP session initialized", extra={
            "server": info.server_info.name,
            "protocol_version": info.protocol_version
        })
        return info

    async def list_tools(self, server: Optional[str] = None) -> ListToolsResult:
        """List tools; servers without tool support yield an empty list."""
        try:
            result = await self.request("tools/list", self._with_server({}, server))
        except Exception as e:
            if is_method_not_found(e):
                logger.warning("Tools not supported by this MCP server, returning empty list")
                return ListToolsResult(tools=[])
            raise
        return ListToolsResult.model_validate(result or {})

    async def list_resources(self, server: Optional[str] = None) -> ListResourcesResult:
        """List resources; servers without resource support yield an empty list."""
        try:
            result = await self.request("resources/list", self._with_server({}, server))
        except Exception as e:
            if is_method_not_found(e):
                logger.warning("Resources not supported by this MCP server, returning empty list")
                return ListResourcesResult(resources=[])
            raise
        return ListResourcesResult.model_validate(result or {})

    async def fetch_resource(self, uri: str, server: Optional[str] = None) -> Any:
        return await self.request("resources/read", self._with_server({"uri": uri}, server))

    async def call_tool(
            self,
            name: str,
            arguments: Optional[Dict[str, Any]] = None,
            server: Optional[str] = None
    ) -> Any:
        params = self._with_server({"name": name, "arguments": arguments or {}}, server)
        return await self.request("tools/call", params)
