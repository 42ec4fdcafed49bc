"""Tool use for models without native function calling.

Tools are described in the system prompt and the model answers with
``<tool_use>`` markup, which is parsed out of the round's text. Results go
back as ``<tool_use_result>`` blocks in a user turn.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence

from unified_stream.adapters.base import parse_tool_arguments
from unified_stream.types import RawToolCall, ToolCallResponse, ToolDef

TOOL_USE_PATTERN = re.compile(
    r"<tool_use>\s*<name>(?P<name>.*?)</name>\s*<arguments>(?P<arguments>.*?)</arguments>\s*</tool_use>",
    re.DOTALL,
)

TOOL_USE_PROMPT = """\
You can call tools to answer the user. Call one or more tools per message; \
each result comes back in the next user message. Work step by step and let \
each call build on the previous result.

## Calling a tool

Write the call as XML, with the exact tool name and a JSON object of arguments:

<tool_use>
  <name>{{tool_name}}</name>
  <arguments>{{json_arguments}}</arguments>
</tool_use>

Results are returned as:

<tool_use_result>
  <name>{{tool_name}}</name>
  <result>{{result}}</result>
</tool_use_result>

## Available tools

{available_tools}

## Rules

1. Pass literal argument values, never variable names.
2. Only call a tool when it is needed; otherwise answer directly.
3. Never repeat a call with the same arguments.
4. Always use the XML format above for tool calls.

# User instructions

{user_prompt}
"""


def describe_tools(tools: Sequence[ToolDef]) -> str:
    entries = []
    for tool in tools:
        entries.append(
            "<tool>\n"
            f"  <name>{tool.id}</name>\n"
            f"  <description>{tool.description or ''}</description>\n"
            f"  <arguments>{json.dumps(tool.input_schema, ensure_ascii=False)}</arguments>\n"
            "</tool>"
        )
    return "<tools>\n" + "\n".join(entries) + "\n</tools>"


def build_tool_use_prompt(user_prompt: str, tools: Sequence[ToolDef]) -> str:
    """System prompt that teaches the model the markup; unchanged if there are no tools."""
    if not tools:
        return user_prompt
    return TOOL_USE_PROMPT.format(available_tools=describe_tools(tools), user_prompt=user_prompt)


def parse_tool_use(text: str) -> list[RawToolCall]:
    """Extract every ``<tool_use>`` block from ``text``.

    Arguments that are not valid JSON are passed on as the raw string.
    """
    calls = []
    for position, match in enumerate(TOOL_USE_PATTERN.finditer(text)):
        raw_arguments = match.group("arguments").strip()
        calls.append(
            RawToolCall(
                id=f"tool_use_{position}",
                name=match.group("name").strip(),
                arguments=parse_tool_arguments(raw_arguments),
                raw_arguments=raw_arguments,
            )
        )
    return calls


def strip_tool_use(text: str) -> str:
    return TOOL_USE_PATTERN.sub("", text).strip()


def format_tool_results(responses: Sequence[ToolCallResponse]) -> str:
    blocks = []
    for response in responses:
        content = response.response.content if response.response else ""
        blocks.append(
            "<tool_use_result>\n"
            f"  <name>{response.tool.id}</name>\n"
            f"  <result>{content}</result>\n"
            "</tool_use_result>"
        )
    return "\n".join(blocks)
