"""Resolution and concurrent execution of model-requested tool calls."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from unified_stream.errors import ToolExecutionError
from unified_stream.types import RawToolCall, ToolCallResponse, ToolDef, ToolResult

logger = logging.getLogger(__name__)


class ToolExecutor(Protocol):
    """Runs one tool call. May raise; failures become error results."""

    async def execute(self, tool: ToolDef, arguments: Any) -> ToolResult: ...


class CallableToolExecutor:
    """Adapts a plain ``async (tool, arguments) -> str | ToolResult`` function."""

    def __init__(self, func: Callable[[ToolDef, Any], Awaitable[str | ToolResult]]) -> None:
        self._func = func

    async def execute(self, tool: ToolDef, arguments: Any) -> ToolResult:
        result = await self._func(tool, arguments)
        if isinstance(result, ToolResult):
            return result
        return ToolResult(content=result if isinstance(result, str) else json.dumps(result, ensure_ascii=False))


def resolve_tool_calls(calls: Sequence[RawToolCall], tools: Sequence[ToolDef]) -> list[ToolCallResponse]:
    """Match requested calls to known tools by id, then by name.

    Calls naming a tool that is not offered are dropped with a warning.
    """
    by_id = {tool.id: tool for tool in tools}
    by_name = {tool.name: tool for tool in tools}
    responses: list[ToolCallResponse] = []
    for call in calls:
        tool = by_id.get(call.name) or by_name.get(call.name)
        if tool is None:
            logger.warning("Model requested unknown tool %r, dropping the call", call.name)
            continue
        responses.append(
            ToolCallResponse(id=call.id, tool=tool, arguments=call.arguments, status="pending", call_id=call.id)
        )
    return responses


async def _run_one(executor: ToolExecutor, response: ToolCallResponse) -> ToolCallResponse:
    try:
        result = await executor.execute(response.tool, response.arguments)
    except asyncio.CancelledError:
        raise
    except ToolExecutionError as exc:
        logger.warning("Tool %s failed: %s", response.tool.name, exc)
        return response.model_copy(update={"status": "error", "response": ToolResult(content=str(exc), is_error=True)})
    except Exception as exc:
        logger.exception("Tool %s raised", response.tool.name)
        message = f"Error calling tool {response.tool.name}: {exc}"
        return response.model_copy(update={"status": "error", "response": ToolResult(content=message, is_error=True)})
    status = "error" if result.is_error else "done"
    return response.model_copy(update={"status": status, "response": result})


async def execute_tool_calls(executor: ToolExecutor, responses: Sequence[ToolCallResponse]) -> list[ToolCallResponse]:
    """Run every call concurrently and wait for all of them; order is preserved."""
    if not responses:
        return []
    invoking = [response.model_copy(update={"status": "invoking"}) for response in responses]
    return list(await asyncio.gather(*(_run_one(executor, response) for response in invoking)))
