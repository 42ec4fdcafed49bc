"""Adapters for OpenAI-style chat completion deltas and typed Responses events."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from unified_stream.adapters.base import StreamAdapter
from unified_stream.errors import ProviderError
from unified_stream.types import (
    Chunk,
    TextDeltaChunk,
    ThinkingDeltaChunk,
    Usage,
    WebSearchSource,
)

logger = logging.getLogger(__name__)


def _usage_from_chat(data: dict[str, Any] | None) -> Usage | None:
    if not data:
        return None
    prompt = int(data.get("prompt_tokens") or 0)
    completion = int(data.get("completion_tokens") or 0)
    return Usage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=int(data.get("total_tokens") or prompt + completion),
    )


def _usage_from_responses(data: dict[str, Any] | None) -> Usage | None:
    if not data:
        return None
    prompt = int(data.get("input_tokens") or 0)
    completion = int(data.get("output_tokens") or 0)
    return Usage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=int(data.get("total_tokens") or prompt + completion),
    )


class OpenAIChatStreamAdapter(StreamAdapter):
    """``choices[0].delta`` chunks from ``/v1/chat/completions``.

    Also accepts a non-streaming completion body, whose ``message`` is
    treated as one large delta.
    """

    provider_name = "openai"
    web_search_source = WebSearchSource.OPENAI

    def handle_event(self, event: dict[str, Any]) -> Iterator[Chunk]:
        if "error" in event and not event.get("choices"):
            error = event["error"] or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderError(self.provider_name, message or "stream error")

        usage = _usage_from_chat(event.get("usage"))
        if usage is not None:
            self.usage = usage

        # Perplexity style top-level citations: a list of urls
        citations = event.get("citations")
        if isinstance(citations, list):
            self.web_search_source = WebSearchSource.PERPLEXITY
            for url in citations:
                if isinstance(url, str):
                    self.add_citation(url)

        choices = event.get("choices") or []
        if not choices:
            return
        choice = choices[0]
        delta = choice.get("delta") or choice.get("message") or {}

        reasoning = delta.get("reasoning_content") or delta.get("reasoning")
        if isinstance(reasoning, str) and reasoning:
            yield ThinkingDeltaChunk(text=reasoning)

        content = delta.get("content")
        if isinstance(content, str) and content:
            yield TextDeltaChunk(text=content)

        for position, tool_call in enumerate(delta.get("tool_calls") or []):
            function = tool_call.get("function") or {}
            self.tool_calls.feed(
                tool_call.get("index", position),
                call_id=tool_call.get("id"),
                name=function.get("name"),
                fragment=function.get("arguments") or "",
            )

        for annotation in delta.get("annotations") or []:
            if annotation.get("type") == "url_citation":
                citation = annotation.get("url_citation") or {}
                self.add_citation(citation.get("url"), citation.get("title"))

        for image in delta.get("images") or []:
            url = (image.get("image_url") or {}).get("url")
            if url:
                yield from self.announce_image()
                self.images.append(url)

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            self.finish_reason = finish_reason
            yield from self.flush_tool_calls()


class OpenAIResponsesStreamAdapter(StreamAdapter):
    """Typed ``response.*`` events from ``/v1/responses``."""

    provider_name = "openai"
    web_search_source = WebSearchSource.OPENAI_RESPONSE

    def __init__(self) -> None:
        super().__init__()
        self._output_items: list[dict[str, Any]] = []

    def raw_output(self) -> list[dict[str, Any]] | None:
        return list(self._output_items) or None

    def handle_event(self, event: dict[str, Any]) -> Iterator[Chunk]:
        event_type = event.get("type", "")

        if event_type == "response.output_text.delta":
            delta = event.get("delta") or ""
            if delta:
                yield TextDeltaChunk(text=delta)
        elif event_type in ("response.reasoning_summary_text.delta", "response.reasoning_text.delta"):
            delta = event.get("delta") or ""
            if delta:
                yield ThinkingDeltaChunk(text=delta)
        elif event_type == "response.output_item.added":
            item = event.get("item") or {}
            if item.get("type") == "function_call":
                self.tool_calls.feed(
                    event.get("output_index", item.get("id")),
                    call_id=item.get("call_id"),
                    name=item.get("name"),
                    fragment=item.get("arguments") or "",
                )
            elif item.get("type") == "image_generation_call":
                yield from self.announce_image()
        elif event_type == "response.function_call_arguments.delta":
            self.tool_calls.feed(event.get("output_index", event.get("item_id")), fragment=event.get("delta") or "")
        elif event_type == "response.function_call_arguments.done":
            self.tool_calls.replace_arguments(
                event.get("output_index", event.get("item_id")), event.get("arguments") or ""
            )
        elif event_type in ("response.image_generation_call.in_progress", "response.image_generation_call.generating"):
            yield from self.announce_image()
        elif event_type == "response.output_text.annotation.added":
            annotation = event.get("annotation") or {}
            if annotation.get("type") == "url_citation":
                self.add_citation(annotation.get("url"), annotation.get("title"))
        elif event_type == "response.output_item.done":
            yield from self._handle_output_item(event.get("item") or {}, event.get("output_index"))
        elif event_type in ("response.completed", "response.incomplete"):
            response = event.get("response") or {}
            self.usage = _usage_from_responses(response.get("usage"))
            details = response.get("incomplete_details") or {}
            self.finish_reason = details.get("reason") or response.get("status") or "completed"
        elif event_type == "response.failed":
            error = (event.get("response") or {}).get("error") or {}
            raise ProviderError(self.provider_name, error.get("message") or "response failed")
        elif event_type == "error":
            raise ProviderError(self.provider_name, event.get("message") or "stream error")
        elif event.get("object") == "response":
            # non-streaming body
            for index, item in enumerate(event.get("output") or []):
                yield from self._handle_full_item(item, index)
            self.usage = _usage_from_responses(event.get("usage"))
            self.finish_reason = event.get("status")

    def _handle_output_item(self, item: dict[str, Any], output_index: Any) -> Iterator[Chunk]:
        item_type = item.get("type")
        if item_type == "function_call":
            self.tool_calls.feed(output_index, call_id=item.get("call_id"), name=item.get("name"))
            if item.get("arguments"):
                self.tool_calls.replace_arguments(output_index, item["arguments"])
        elif item_type == "image_generation_call" and item.get("result"):
            yield from self.announce_image()
            self.images.append(f"data:image/png;base64,{item['result']}")
            # the generated image is not echoed back on resubmission
            return
        self._output_items.append(item)

    def _handle_full_item(self, item: dict[str, Any], index: int) -> Iterator[Chunk]:
        item_type = item.get("type")
        if item_type == "message":
            for part in item.get("content") or []:
                if part.get("type") == "output_text" and part.get("text"):
                    yield TextDeltaChunk(text=part["text"])
                for annotation in part.get("annotations") or []:
                    if annotation.get("type") == "url_citation":
                        self.add_citation(annotation.get("url"), annotation.get("title"))
        elif item_type == "reasoning":
            for summary in item.get("summary") or []:
                if summary.get("text"):
                    yield ThinkingDeltaChunk(text=summary["text"])
        yield from self._handle_output_item(item, index)
