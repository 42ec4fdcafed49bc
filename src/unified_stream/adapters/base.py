"""Shared structure of the per-vendor stream adapters."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from typing import Any

from unified_stream.types import (
    Chunk,
    Citation,
    ImageCompleteChunk,
    ImageCreatedChunk,
    LLMResponseCompleteChunk,
    RawToolCall,
    ToolCallsCreatedChunk,
    Usage,
    WebSearchCompleteChunk,
    WebSearchSource,
)

logger = logging.getLogger(__name__)


def parse_tool_arguments(raw: str) -> Any:
    """Parse accumulated argument text; fall back to the raw string, never raise."""
    if not raw or not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Tool arguments are not valid JSON, passing raw text: %r", raw)
        return raw


class ToolCallAccumulator:
    """Buffer streamed tool-call fragments by call index until the call is finished."""

    def __init__(self) -> None:
        self._calls: dict[Any, dict[str, str]] = {}

    def feed(self, key: Any, *, call_id: str | None = None, name: str | None = None, fragment: str = "") -> None:
        entry = self._calls.setdefault(key, {"id": "", "name": "", "arguments": ""})
        if call_id:
            entry["id"] = call_id
        if name:
            entry["name"] = name
        if fragment:
            entry["arguments"] += fragment

    def replace_arguments(self, key: Any, arguments: str) -> None:
        entry = self._calls.setdefault(key, {"id": "", "name": "", "arguments": ""})
        entry["arguments"] = arguments

    def has_calls(self) -> bool:
        return bool(self._calls)

    def finalize(self) -> list[RawToolCall]:
        calls: list[RawToolCall] = []
        for position, key in enumerate(self._calls):
            entry = self._calls[key]
            if not entry["name"]:
                logger.debug("Dropping tool call fragment without a name at %r", key)
                continue
            calls.append(
                RawToolCall(
                    id=entry["id"] or f"call_{position}",
                    name=entry["name"],
                    arguments=parse_tool_arguments(entry["arguments"]),
                    raw_arguments=entry["arguments"],
                )
            )
        self._calls.clear()
        return calls


class StreamAdapter(ABC):
    """Converts one vendor-native event stream into canonical chunks.

    An adapter instance serves exactly one stream; re-issuing the vendor
    request with a fresh adapter is the only way to restart.
    """

    provider_name: str = "vendor"
    web_search_source: WebSearchSource = WebSearchSource.OPENAI

    def __init__(self) -> None:
        self._used = False
        self.tool_calls = ToolCallAccumulator()
        self.citations: list[Citation] = []
        self.images: list[str] = []
        self._image_announced = False
        self.usage: Usage | None = None
        self.finish_reason: str | None = None
        self._tool_calls_emitted = False

    async def adapt(self, events: AsyncIterator[dict[str, Any]]) -> AsyncIterator[Chunk]:
        if self._used:
            raise RuntimeError(f"{type(self).__name__} instances cannot be restarted")
        self._used = True
        async for event in events:
            for chunk in self.handle_event(event):
                yield chunk
        for chunk in self.finish():
            yield chunk

    @abstractmethod
    def handle_event(self, event: dict[str, Any]) -> Iterator[Chunk]:
        """Translate one decoded vendor event."""
        raise NotImplementedError

    def raw_output(self) -> list[dict[str, Any]] | None:
        """Vendor-native assistant output to echo back on resubmission."""
        return None

    def finish(self) -> Iterator[Chunk]:
        if self.images:
            yield ImageCompleteChunk(images=list(self.images))
        if self.citations:
            yield WebSearchCompleteChunk(results=list(self.citations), source=self.web_search_source)
        yield from self.flush_tool_calls()
        yield LLMResponseCompleteChunk(
            usage=self.usage,
            finish_reason=self.finish_reason,
            raw_output=self.raw_output(),
        )

    def flush_tool_calls(self) -> Iterator[Chunk]:
        if self._tool_calls_emitted or not self.tool_calls.has_calls():
            return
        self._tool_calls_emitted = True
        calls = self.tool_calls.finalize()
        if calls:
            yield ToolCallsCreatedChunk(tool_calls=calls)

    def announce_image(self) -> Iterator[Chunk]:
        if not self._image_announced:
            self._image_announced = True
            yield ImageCreatedChunk()

    def add_citation(self, url: str | None, title: str | None = None, snippet: str | None = None) -> None:
        if not url or any(existing.url == url for existing in self.citations):
            return
        self.citations.append(Citation(url=url, title=title, snippet=snippet))
