"""
Environment driven settings for the MCP chat service.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_SERVER_URL = "https://sandbox.api.dimescheduler.com/mcp"
DEFAULT_MAX_TOOL_ROUNDS = 8
DEFAULT_HTTP_TIMEOUT = 30.0


class Settings(BaseModel):
    openai_api_key: Optional[str] = None
    mcp_api_key: Optional[str] = None
    mcp_server_url: str = DEFAULT_SERVER_URL
    llm_provider: str = "openai"
    llm_model: Optional[str] = None
    llm_base_url: Optional[str] = None
    max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            mcp_api_key=os.getenv("MCP_API_KEY") or None,
            mcp_server_url=os.getenv("MCP_SERVER_URL") or DEFAULT_SERVER_URL,
            llm_provider=os.getenv("LLM_PROVIDER", "openai").lower(),
            llm_model=os.getenv("LLM_MODEL") or None,
            llm_base_url=os.getenv("LLM_BASE_URL") or None,
            max_tool_rounds=int(os.getenv("MAX_TOOL_ROUNDS", DEFAULT_MAX_TOOL_ROUNDS)),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
