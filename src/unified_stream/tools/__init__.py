"""Tool execution and prompt-mode tool use."""

from .executor import CallableToolExecutor, ToolExecutor, execute_tool_calls, resolve_tool_calls
from .prompt import build_tool_use_prompt, format_tool_results, parse_tool_use, strip_tool_use

__all__ = [
    "CallableToolExecutor",
    "ToolExecutor",
    "build_tool_use_prompt",
    "execute_tool_calls",
    "format_tool_results",
    "parse_tool_use",
    "resolve_tool_calls",
    "strip_tool_use",
]
