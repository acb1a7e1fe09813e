"""
Tool-augmented chat loop bridging chat-model function calling and MCP tools.

One call to :meth:`Orchestrator.run_turn` drives a single assistant turn:
the model is queried, every function invocation it requests is executed
through the MCP client, the results are fed back, and the model is queried
again until it answers without requesting tools.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .config import DEFAULT_MAX_TOOL_ROUNDS
from .errors import ModelError, ToolExecutionError
from .llm_client import LLMClient
from .mcp_client import MCPClient
from .models import (
    ChatMessage,
    ModelToolCall,
    ReasoningStep,
    Tool,
    ToolCall,
    ToolCallResult,
    TurnResult,
)

logger = logging.getLogger("orchestrator")

DEFAULT_INSTRUCTIONS = (
    "You are an AI assistant integrated with the Dime.Scheduler MCP (Model Context Protocol) server.\n\n"
    "You have access to tools and resources from the Dime.Scheduler MCP server. "
    "When users ask questions about scheduling, resources, or related topics, you can use "
    "the available MCP tools to fetch real-time information and perform actions.\n\n"
    "Always be helpful, accurate, and provide clear explanations. When using tools, "
    "explain what you're doing to help the user understand the process."
)

ROUND_LIMIT_MESSAGE = (
    "I stopped after {rounds} rounds of tool calls without reaching an answer. "
    "Please narrow the question and try again."
)

EMPTY_SCHEMA = {"type": "object", "properties": {}}


def to_function_schemas(tools: Sequence[Tool]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description or f"Tool: {tool.name}",
                "parameters": tool.input_schema or dict(EMPTY_SCHEMA),
            },
        }
        for tool in tools
    ]


def to_wire_messages(history: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
    """Convert history to chat-completion messages.

    Each assistant message is followed by one ``tool`` message per result.
    """
    wire: List[Dict[str, Any]] = []

    for msg in history:
        if msg.role in ("system", "user"):
            wire.append({"role": msg.role, "content": msg.content})
            continue

        assistant: Dict[str, Any] = {"role": "assistant", "content": msg.content}
        if msg.tool_calls:
            assistant["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments),
                    },
                }
                for call in msg.tool_calls
            ]
        wire.append(assistant)

        for item in msg.tool_call_results or []:
            wire.append({
                "role": "tool",
                "tool_call_id": item.tool_call_id,
                "content": json.dumps(item.result, default=str),
            })

    return wire


def from_wire_messages(wire: Sequence[Dict[str, Any]]) -> List[ChatMessage]:
    """Inverse of :func:`to_wire_messages`; tool messages fold into the preceding assistant."""
    history: List[ChatMessage] = []

    for entry in wire:
        role = entry.get("role")

        if role == "tool":
            if not history or history[-1].role != "assistant":
                raise ValueError("tool message without a preceding assistant message")
            content = entry.get("content")
            try:
                result = json.loads(content) if isinstance(content, str) else content
            except json.JSONDecodeError:
                result = content
            owner = history[-1]
            results = list(owner.tool_call_results or [])
            results.append(ToolCallResult(tool_call_id=entry["tool_call_id"], result=result))
            history[-1] = owner.model_copy(update={"tool_call_results": results})
            continue

        if role == "assistant":
            calls = [
                ToolCall(
                    id=call["id"],
                    name=call["function"]["name"],
                    arguments=parse_arguments(call["function"].get("arguments"))
                )
                for call in entry.get("tool_calls") or []
            ]
            history.append(ChatMessage(
                role="assistant",
                content=entry.get("content") or "",
                tool_calls=calls or None
            ))
            continue

        history.append(ChatMessage(role=role, content=entry.get("content") or ""))

    return history


def parse_arguments(raw: Optional[str]) -> Dict[str, Any]:
    """Decode a function-call argument string; anything unusable becomes ``{}``."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error("Error parsing tool arguments", extra={"error": str(e), "raw_arguments": raw[:200]})
        return {}
    if not isinstance(parsed, dict):
        logger.error("Tool arguments are not an object", extra={"raw_arguments": raw[:200]})
        return {}
    return parsed


def build_system_message(instructions: str = DEFAULT_INSTRUCTIONS, now: Optional[datetime] = None) -> ChatMessage:
    now = now or datetime.now().astimezone()
    time_str = f"{now.strftime('%I:%M:%S %p').lstrip('0')} {now.tzname() or ''}".strip()
    content = (
        f"{instructions}\n\n"
        "Current Date and Time:\n"
        f"- ISO DateTime: {now.isoformat()}\n"
        f"- Date: {now.strftime('%A, %B')} {now.day}, {now.year}\n"
        f"- Time: {time_str}"
    )
    return ChatMessage(role="system", content=content)


class Orchestrator:
    def __init__(
            self,
            llm: Optional[LLMClient],
            mcp_client: MCPClient,
            tools: Optional[Sequence[Tool]] = None,
            max_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
            instructions: str = DEFAULT_INSTRUCTIONS
    ):
        self.llm = llm
        self.mcp_client = mcp_client
        self.max_rounds = max_rounds
        self.instructions = instructions
        self._tools: List[Tool] = list(tools or [])

    @property
    def tools(self) -> List[Tool]:
        return list(self._tools)

    def set_tools(self, tools: Sequence[Tool]):
        """Replace the tool catalog wholesale."""
        self._tools = list(tools)
        logger.info("Tool catalog updated", extra={"tools_count": len(self._tools)})

    async def chat(self, history: Sequence[ChatMessage], tools: Optional[Sequence[Tool]] = None) -> ChatMessage:
        result = await self.run_turn(history, tools=tools)
        return result.final

    async def run_turn(self, history: Sequence[ChatMessage], tools: Optional[Sequence[Tool]] = None) -> TurnResult:
        if self.llm is None:
            raise ModelError("Chat model client not initialized")

        # Snapshot so a catalog refresh never changes an in-flight turn
        catalog = list(tools) if tools is not None else list(self._tools)
        functions = to_function_schemas(catalog)

        reasoning: List[ReasoningStep] = []
        working: List[ChatMessage] = list(history)
        produced: List[ChatMessage] = []

        system: List[ChatMessage] = []
        if not working or working[0].role != "system":
            system.append(build_system_message(self.instructions))

        reasoning.append(ReasoningStep(
            step_number=1,
            description="Prepared conversation for the chat model",
            input_data={
                "history_length": len(working),
                "tools_count": len(catalog),
                "system_message_added": bool(system)
            }
        ))

        rounds = 0
        while True:
            reply = await self.llm.complete(
                to_wire_messages(system + working),
                tools=functions or None,
                tool_choice="auto" if functions else None
            )

            if not reply.tool_calls:
                final = ChatMessage(role="assistant", content=reply.content or "")
                produced.append(final)
                reasoning.append(ReasoningStep(
                    step_number=len(reasoning) + 1,
                    description="Chat model produced the final answer",
                    output_data={"rounds": rounds, "response_length": len(final.content)}
                ))
                logger.info("Chat turn completed", extra={"rounds": rounds})
                return TurnResult(final=final, messages=produced, reasoning=reasoning, rounds=rounds)

            if rounds >= self.max_rounds:
                logger.warning("Tool round limit reached", extra={
                    "max_rounds": self.max_rounds,
                    "pending_calls": len(reply.tool_calls)
                })
                final = ChatMessage(role="assistant", content=ROUND_LIMIT_MESSAGE.format(rounds=rounds))
                produced.append(final)
                reasoning.append(ReasoningStep(
                    step_number=len(reasoning) + 1,
                    description="Stopped: tool round limit reached",
                    output_data={"rounds": rounds, "max_rounds": self.max_rounds}
                ))
                return TurnResult(final=final, messages=produced, reasoning=reasoning, rounds=rounds)

            rounds += 1
            message = await self._execute_round(reply.content or "", reply.tool_calls)
            working.append(message)
            produced.append(message)

            reasoning.append(ReasoningStep(
                step_number=len(reasoning) + 1,
                description=f"Executed tool round {rounds}",
                input_data={"tools": [call.name for call in message.tool_calls or []]},
                output_data={
                    "failed": sum(
                        1 for item in message.tool_call_results or []
                        if isinstance(item.result, dict) and set(item.result) == {"error"}
                    )
                }
            ))

    async def _execute_round(self, content: str, requested: Sequence[ModelToolCall]) -> ChatMessage:
        calls: List[ToolCall] = []
        results: List[ToolCallResult] = []

        for invocation in requested:
            call = ToolCall(id=invocation.id, name=invocation.name, arguments=parse_arguments(invocation.arguments))
            calls.append(call)

            try:
                result = await self._execute_tool_call(call)
                results.append(ToolCallResult(tool_call_id=call.id, result=result))
            except ToolExecutionError as e:
                results.append(ToolCallResult(tool_call_id=call.id, result={"error": str(e)}))

        return ChatMessage(role="assistant", content=content, tool_calls=calls, tool_call_results=results)

    async def _execute_tool_call(self, call: ToolCall) -> Any:
        logger.info("Executing tool", extra={"tool": call.name, "tool_call_id": call.id})
        try:
            return await self.mcp_client.call_tool(call.name, call.arguments)
        except Exception as e:
            logger.error("Tool execution failed", extra={"tool": call.name, "error": str(e)})
            raise ToolExecutionError(call.name, str(e) or "Unknown error") from e

    async def fetch_resource(self, uri: str) -> Any:
        return await self.mcp_client.fetch_resource(uri)
