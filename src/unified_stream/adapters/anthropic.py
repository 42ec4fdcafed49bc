"""Adapter for Anthropic Messages stream events."""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

from unified_stream.adapters.base import StreamAdapter, parse_tool_arguments
from unified_stream.errors import ProviderError
from unified_stream.types import (
    Chunk,
    TextDeltaChunk,
    ThinkingDeltaChunk,
    Usage,
    WebSearchSource,
)


class AnthropicStreamAdapter(StreamAdapter):
    """``message_start`` / ``content_block_*`` / ``message_delta`` events.

    Content blocks are rebuilt as they stream so the assistant turn, thinking
    signatures included, can be echoed back verbatim when tools are called.
    """

    provider_name = "anthropic"
    web_search_source = WebSearchSource.ANTHROPIC

    def __init__(self) -> None:
        super().__init__()
        self._blocks: dict[int, dict[str, Any]] = {}
        self._partial_json: dict[int, str] = {}
        self._input_tokens = 0
        self._output_tokens = 0

    def raw_output(self) -> list[dict[str, Any]] | None:
        blocks = [self._blocks[index] for index in sorted(self._blocks)]
        return blocks or None

    def handle_event(self, event: dict[str, Any]) -> Iterator[Chunk]:
        event_type = event.get("type")

        if event_type == "message_start":
            usage = (event.get("message") or {}).get("usage") or {}
            self._input_tokens = int(usage.get("input_tokens") or 0)
            self._output_tokens = int(usage.get("output_tokens") or 0)
        elif event_type == "content_block_start":
            yield from self._start_block(event.get("index", len(self._blocks)), dict(event.get("content_block") or {}))
        elif event_type == "content_block_delta":
            yield from self._apply_delta(event.get("index", 0), event.get("delta") or {})
        elif event_type == "content_block_stop":
            self._stop_block(event.get("index", 0))
        elif event_type == "message_delta":
            delta = event.get("delta") or {}
            if delta.get("stop_reason"):
                self.finish_reason = delta["stop_reason"]
            usage = event.get("usage") or {}
            if "output_tokens" in usage:
                self._output_tokens = int(usage["output_tokens"] or 0)
            if usage.get("input_tokens"):
                self._input_tokens = int(usage["input_tokens"])
        elif event_type == "message_stop":
            yield from self.flush_tool_calls()
        elif event_type == "error":
            error = event.get("error") or {}
            raise ProviderError(self.provider_name, error.get("message") or "stream error")
        elif event_type == "message":
            # non-streaming body
            for index, block in enumerate(event.get("content") or []):
                yield from self._start_block(index, dict(block), complete=True)
                self._stop_block(index)
            usage = event.get("usage") or {}
            self._input_tokens = int(usage.get("input_tokens") or 0)
            self._output_tokens = int(usage.get("output_tokens") or 0)
            self.finish_reason = event.get("stop_reason")

        self.usage = Usage(
            prompt_tokens=self._input_tokens,
            completion_tokens=self._output_tokens,
            total_tokens=self._input_tokens + self._output_tokens,
        )

    def _start_block(self, index: int, block: dict[str, Any], complete: bool = False) -> Iterator[Chunk]:
        self._blocks[index] = block
        block_type = block.get("type")
        if block_type == "text" and block.get("text"):
            yield TextDeltaChunk(text=block["text"])
        elif block_type == "thinking" and block.get("thinking"):
            yield ThinkingDeltaChunk(text=block["thinking"])
        elif block_type == "tool_use":
            self.tool_calls.feed(index, call_id=block.get("id"), name=block.get("name"))
            if complete:
                self._partial_json[index] = _dump_input(block.get("input"))
        elif block_type == "web_search_tool_result":
            for result in block.get("content") or []:
                if isinstance(result, dict) and result.get("type") == "web_search_result":
                    self.add_citation(result.get("url"), result.get("title"))
        for citation in block.get("citations") or []:
            self.add_citation(citation.get("url"), citation.get("title"), citation.get("cited_text"))

    def _apply_delta(self, index: int, delta: dict[str, Any]) -> Iterator[Chunk]:
        block = self._blocks.setdefault(index, {"type": "text", "text": ""})
        delta_type = delta.get("type")
        if delta_type == "text_delta":
            text = delta.get("text") or ""
            block["text"] = block.get("text", "") + text
            if text:
                yield TextDeltaChunk(text=text)
        elif delta_type == "thinking_delta":
            thinking = delta.get("thinking") or ""
            block["thinking"] = block.get("thinking", "") + thinking
            if thinking:
                yield ThinkingDeltaChunk(text=thinking)
        elif delta_type == "signature_delta":
            block["signature"] = block.get("signature", "") + (delta.get("signature") or "")
        elif delta_type == "input_json_delta":
            self._partial_json[index] = self._partial_json.get(index, "") + (delta.get("partial_json") or "")
        elif delta_type == "citations_delta":
            citation = delta.get("citation") or {}
            self.add_citation(citation.get("url"), citation.get("title"), citation.get("cited_text"))

    def _stop_block(self, index: int) -> None:
        block = self._blocks.get(index)
        if block is None or block.get("type") not in ("tool_use", "server_tool_use"):
            return
        raw = self._partial_json.pop(index, "")
        arguments = parse_tool_arguments(raw)
        block["input"] = arguments if isinstance(arguments, dict) else {}
        if block.get("type") == "tool_use":
            self.tool_calls.feed(index, fragment=raw)


def _dump_input(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False)
