import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from .config import DEFAULT_HTTP_TIMEOUT
from .errors import ModelError
from .models import ModelReply, ModelToolCall

logger = logging.getLogger("llm_client")

PROVIDERS = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-4-turbo-preview",
        "key_env": "OPENAI_API_KEY",
    },
    "groq": {
        "base_url": "https://api.groq.com/openai/v1",
        "model": "llama-3.3-70b-versatile",
        "key_env": "GROQ_API_KEY",
    },
}


class LLMClient:
    """Chat-completion client for OpenAI compatible endpoints.

    The ``stub`` provider answers locally and never asks for tools.
    """

    def __init__(
            self,
            api_key: Optional[str] = None,
            provider: Optional[str] = None,
            model: Optional[str] = None,
            base_url: Optional[str] = None,
            timeout: float = DEFAULT_HTTP_TIMEOUT,
            transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.provider = (provider or os.getenv("LLM_PROVIDER", "openai")).lower()
        self.timeout = timeout
        self._transport = transport

        if self.provider == "stub":
            self.api_key = api_key
            self.base_url = base_url or ""
            self.model = model or "stub"
            return

        if self.provider not in PROVIDERS:
            raise ModelError(f"Unsupported LLM provider: {self.provider}")

        defaults = PROVIDERS[self.provider]
        self.api_key = api_key or os.getenv(defaults["key_env"])
        if not self.api_key:
            raise ModelError(f"{defaults['key_env']} is not set")
        self.base_url = (base_url or defaults["base_url"]).rstrip("/")
        self.model = model or defaults["model"]

    async def complete(
            self,
            messages: List[Dict[str, Any]],
            tools: Optional[List[Dict[str, Any]]] = None,
            tool_choice: Optional[str] = None
    ) -> ModelReply:

        logger.info("LLM request started", extra={
            "provider": self.provider,
            "model": self.model,
            "messages_count": len(messages),
            "tools_count": len(tools or [])
        })

        if self.provider == "stub":
            last_user = next((m.get("content") for m in reversed(messages) if m.get("role") == "user"), "")
            return ModelReply(content=f"[stub] {last_user}")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
        }
        if tools:
            payload["tools"] = tools
        if tool_choice:
            payload["tool_choice"] = tool_choice

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        try:
            async with httpx.AsyncClient(
                    timeout=self.timeout,
                    transport=self._transport,
                    follow_redirects=True
            ) as client:
                resp = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("LLM API error", extra={
                "status": e.response.status_code,
                "error": e.response.text[:200]
            })
            raise ModelError(f"HTTP {e.response.status_code}: {e.response.text[:200]}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("LLM request failed", extra={"error_type": type(e).__name__, "error": str(e)})
            raise ModelError(str(e)) from e

        choices = data.get("choices") or []
        message = choices[0].get("message") if choices else None
        if not message:
            raise ModelError("No response from the chat model")

        tool_calls = [
            ModelToolCall(
                id=call.get("id", ""),
                name=call["function"].get("name", ""),
                arguments=call["function"].get("arguments") or ""
            )
            for call in message.get("tool_calls") or []
            if call.get("type", "function") == "function" and call.get("function")
        ]

        usage = data.get("usage", {})
        logger.info("LLM response received", extra={
            "response_length": len(message.get("content") or ""),
            "tool_calls_count": len(tool_calls),
            "usage_tokens": usage.get("total_tokens", "unknown"),
            "usage_prompt_tokens": usage.get("prompt_tokens", "unknown"),
            "usage_completion_tokens": usage.get("completion_tokens", "unknown")
        })

        return ModelReply(content=message.get("content"), tool_calls=tool_calls)
