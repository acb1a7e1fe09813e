import logging
import os
from typing import List, Optional

from fastapi import FastAPI
from pydantic import BaseModel, Field

from chat_core.config import Settings
from chat_core.models import ChatMessage
from .samples import get_sample_questions
from .session import ChatSession

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s"
)


class ConnectRequest(BaseModel):
    model_api_key: Optional[str] = None
    mcp_api_key: Optional[str] = None
    server_url: Optional[str] = None


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)


class ResourceReadRequest(BaseModel):
    uri: str


class ChatService:
    def __init__(self, session: Optional[ChatSession] = None, name: str = "MCP Chat"):
        self.name = name
        self.session = session or ChatSession.from_settings(Settings.from_env())
        self.app = FastAPI(title=name)
        logger = logging.getLogger("chat_service")

        @self.app.get("/health")
        def health():
            return {
                "status": "ok",
                "service": self.name,
                "connected": self.session.connected,
                "chat_enabled": self.session.orchestrator is not None,
                "model_error": self.session.model_error
            }

        @self.app.post("/connect")
        async def connect(req: Optional[ConnectRequest] = None):
            if req is not None and (req.model_api_key or req.mcp_api_key or req.server_url):
                self.session.initialize(req.model_api_key, req.mcp_api_key, req.server_url)

            await self.session.connect()

            if self.session.error:
                return {"error": "Failed to connect to MCP server", "details": self.session.error}

            info = self.session.server_info
            return {
                "connected": self.session.connected,
                "server_url": self.session.server_url,
                "server": info.server_info.model_dump() if info else None,
                "protocol_version": info.protocol_version if info else None,
                "tools_count": len(self.session.tools),
                "chat_enabled": self.session.orchestrator is not None,
                "model_error": self.session.model_error
            }

        @self.app.get("/tools")
        def tools():
            return {
                "tools": [
                    {
                        **tool.model_dump(by_alias=True, exclude_none=True),
                        "sample_questions": get_sample_questions(tool.name)
                    }
                    for tool in self.session.tools
                ]
            }

        @self.app.get("/resources")
        async def resources():
            try:
                items = await self.session.load_resources()
            except Exception as e:
                logger.error("Listing resources failed", extra={"error": str(e)})
                return {"error": "Failed to list resources", "details": str(e)}
            return {"resources": [item.model_dump(by_alias=True, exclude_none=True) for item in items]}

        @self.app.post("/resources/read")
        async def read_resource(req: ResourceReadRequest):
            try:
                return {"uri": req.uri, "result": await self.session.fetch_resource(req.uri)}
            except Exception as e:
                logger.error("Resource fetch failed", extra={"uri": req.uri, "error": str(e)})
                return {"error": "Failed to fetch resource", "uri": req.uri, "details": str(e)}

        @self.app.post("/chat")
        async def chat(req: ChatRequest):
            try:
                turn = await self.session.chat(req.messages)
            except Exception as e:
                logger.error("Chat turn failed", extra={"error_type": type(e).__name__, "error": str(e)})
                return {"error": "Chat failed", "details": str(e)}

            return {
                "message": turn.final.model_dump(by_alias=True, exclude_none=True),
                "messages": [m.model_dump(by_alias=True, exclude_none=True) for m in turn.messages],
                "reasoning": [step.model_dump() for step in turn.reasoning],
                "rounds": turn.rounds
            }
