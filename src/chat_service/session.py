import logging
from typing import Any, List, Optional, Sequence

import httpx

from chat_core.config import Settings
from chat_core.errors import ChatCoreError
from chat_core.llm_client import LLMClient
from chat_core.mcp_client import MCPClient
from chat_core.models import ChatMessage, InitializeResult, Resource, Tool, TurnResult
from chat_core.orchestrator import Orchestrator

logger = logging.getLogger("chat_session")


class SessionError(ChatCoreError):
    pass


class ChatSession:
    """Holds the MCP client, the orchestrator and the tool catalog of one user session."""

    def __init__(
            self,
            settings: Optional[Settings] = None,
            mcp_transport: Optional[httpx.AsyncBaseTransport] = None,
            llm_transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or Settings.from_env()
        self._mcp_transport = mcp_transport
        self._llm_transport = llm_transport

        self.server_url = self.settings.mcp_server_url
        self.mcp_api_key = ""
        self.mcp_client: Optional[MCPClient] = None
        self.orchestrator: Optional[Orchestrator] = None
        self.server_info: Optional[InitializeResult] = None
        self.connected = False
        self.is_loading = False
        self.error: Optional[str] = None
        self.model_error: Optional[str] = None
        self.tools: List[Tool] = []
        self.resources: List[Resource] = []

    def initialize(self, model_api_key: Optional[str], mcp_api_key: Optional[str], server_url: Optional[str] = None):
        self.server_url = server_url or self.settings.mcp_server_url
        self.mcp_api_key = mcp_api_key or ""
        self.mcp_client = MCPClient(
            self.server_url,
            self.mcp_api_key or None,
            timeout=self.settings.http_timeout,
            transport=self._mcp_transport
        )
        self.orchestrator = None
        self.connected = False
        self.error = None
        self.model_error = None

        stub = self.settings.llm_provider == "stub"
        if stub or (model_api_key or "").strip():
            try:
                llm = LLMClient(
                    api_key=model_api_key,
                    provider=self.settings.llm_provider,
                    model=self.settings.llm_model,
                    base_url=self.settings.llm_base_url,
                    timeout=self.settings.http_timeout,
                    transport=self._llm_transport
                )
            except ChatCoreError as e:
                logger.error("Failed to initialize chat model client", extra={"error": str(e)})
                self.model_error = str(e)
                return
            self.orchestrator = Orchestrator(llm, self.mcp_client, max_rounds=self.settings.max_tool_rounds)

        logger.info("Session initialized", extra={
            "server_url": self.server_url,
            "has_mcp_key": bool(self.mcp_api_key),
            "chat_enabled": self.orchestrator is not None
        })

    @classmethod
    def from_settings(cls, settings: Settings, **transports) -> "ChatSession":
        session = cls(settings, **transports)
        session.initialize(settings.openai_api_key, settings.mcp_api_key, settings.mcp_server_url)
        return session

    async def connect(self):
        if not self.mcp_client or not self.mcp_api_key.strip():
            return

        self.is_loading = True
        self.error = None
        try:
            self.server_info = await self.mcp_client.initialize()
            self.connected = True
            await self.load_tools()
        except Exception as e:
            logger.error("Failed to connect to MCP server", extra={"server_url": self.server_url, "error": str(e)})
            self.error = str(e) or "Failed to connect to MCP server"
            self.connected = False
        finally:
            self.is_loading = False

    async def load_tools(self):
        if not self.mcp_client:
            return

        try:
            result = await self.mcp_client.list_tools()
            self.tools = list(result.tools)
        except Exception as e:
            logger.warning("Tools not available", extra={"error": str(e)})
            self.tools = []

        if self.orchestrator:
            self.orchestrator.set_tools(self.tools)

    async def load_resources(self) -> List[Resource]:
        if not self.mcp_client:
            raise SessionError("MCP client not initialized")
        result = await self.mcp_client.list_resources()
        self.resources = list(result.resources)
        return self.resources

    async def fetch_resource(self, uri: str) -> Any:
        if not self.mcp_client:
            raise SessionError("MCP client not initialized")
        return await self.mcp_client.fetch_resource(uri)

    async def chat(self, history: Sequence[ChatMessage]) -> TurnResult:
        if not self.orchestrator:
            reason = self.model_error or "the model API key is missing"
            raise SessionError(f"Chat is not available: {reason}")
        return await self.orchestrator.run_turn(history, tools=self.tools)
