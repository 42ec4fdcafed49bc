"""Adapter for Gemini ``streamGenerateContent`` responses."""

from __future__ import annotations

import json
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


class GeminiStreamAdapter(StreamAdapter):
    """Each event is a full ``GenerateContentResponse`` holding new parts.

    Function calls arrive whole, never fragmented, so each part becomes one
    accumulator entry keyed by its position in the turn.
    """

    provider_name = "gemini"
    web_search_source = WebSearchSource.GEMINI

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[dict[str, Any]] = []

    def raw_output(self) -> list[dict[str, Any]] | None:
        return list(self._parts) or None

    def handle_event(self, event: dict[str, Any]) -> Iterator[Chunk]:
        if "error" in event:
            error = event["error"] or {}
            raise ProviderError(self.provider_name, error.get("message") or "stream error", error.get("code"))

        block_reason = (event.get("promptFeedback") or {}).get("blockReason")
        if block_reason and not event.get("candidates"):
            raise ProviderError(self.provider_name, f"prompt blocked: {block_reason}")

        usage = event.get("usageMetadata")
        if usage:
            prompt = int(usage.get("promptTokenCount") or 0)
            completion = int(usage.get("candidatesTokenCount") or 0) + int(usage.get("thoughtsTokenCount") or 0)
            self.usage = Usage(
                prompt_tokens=prompt,
                completion_tokens=completion,
                total_tokens=int(usage.get("totalTokenCount") or prompt + completion),
            )

        candidates = event.get("candidates") or []
        if not candidates:
            return
        candidate = candidates[0]

        for part in (candidate.get("content") or {}).get("parts") or []:
            yield from self._handle_part(part)

        grounding = candidate.get("groundingMetadata") or {}
        for source in grounding.get("groundingChunks") or []:
            web = source.get("web") or {}
            self.add_citation(web.get("uri"), web.get("title"))

        if candidate.get("finishReason"):
            self.finish_reason = candidate["finishReason"]

    def _handle_part(self, part: dict[str, Any]) -> Iterator[Chunk]:
        text = part.get("text")
        if part.get("thought"):
            if text:
                yield ThinkingDeltaChunk(text=text)
            self._keep(part)
            return
        if text:
            yield TextDeltaChunk(text=text)
        call = part.get("functionCall")
        if call:
            key = len(self._parts)
            self.tool_calls.feed(key, call_id=call.get("id"), name=call.get("name"))
            self.tool_calls.replace_arguments(key, json.dumps(call.get("args") or {}, ensure_ascii=False))
        inline = part.get("inlineData")
        if inline and inline.get("data"):
            yield from self.announce_image()
            self.images.append(f"data:{inline.get('mimeType', 'image/png')};base64,{inline['data']}")
            return
        self._keep(part)

    def _keep(self, part: dict[str, Any]) -> None:
        # consecutive text deltas collapse into one part for resubmission
        if self._parts and _mergeable(self._parts[-1], part):
            previous = self._parts[-1]
            previous["text"] = previous.get("text", "") + part.get("text", "")
            if part.get("thoughtSignature"):
                previous["thoughtSignature"] = part["thoughtSignature"]
            return
        self._parts.append(dict(part))


def _mergeable(previous: dict[str, Any], part: dict[str, Any]) -> bool:
    if "text" not in previous or "text" not in part:
        return False
    return bool(previous.get("thought")) == bool(part.get("thought")) and not previous.get("thoughtSignature")
