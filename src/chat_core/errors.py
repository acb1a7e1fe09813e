from typing import Any, Optional


class ChatCoreError(Exception):
    """Base class for every error raised by chat_core."""


class TransportError(ChatCoreError):
    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"HTTP error! status: {status_code}")


class ParseError(ChatCoreError):
    def __init__(self, excerpt: str):
        self.excerpt = excerpt[:100]
        super().__init__(f"Failed to parse response as JSON: {self.excerpt}")


class ProtocolError(ChatCoreError):
    """JSON-RPC level failure: an `error` member or a missing `result`."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message)


class ToolExecutionError(ChatCoreError):
    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(message)


class ModelError(ChatCoreError):
    """The chat-completion provider failed or returned nothing usable."""
