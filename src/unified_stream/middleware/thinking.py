"""Thinking span bookkeeping shared by native and tag-extracted reasoning."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable

from unified_stream.types import (
    Chunk,
    ChunkType,
    ThinkingCompleteChunk,
    ThinkingDeltaChunk,
)

# Chunks that end an open thinking span when they arrive.
SPAN_ENDING = frozenset(
    {
        ChunkType.TEXT_DELTA,
        ChunkType.TEXT_COMPLETE,
        ChunkType.IMAGE_CREATED,
        ChunkType.IMAGE_COMPLETE,
        ChunkType.WEB_SEARCH_COMPLETE,
        ChunkType.TOOL_CALLS_CREATED,
        ChunkType.LLM_RESPONSE_COMPLETE,
    }
)


class ThinkingSpan:
    """Accumulates one thinking span and stamps its elapsed time."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started_at: float | None = None
        self.text = ""

    @property
    def active(self) -> bool:
        return self._started_at is not None

    def elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        return int((self._clock() - self._started_at) * 1000)

    def add(self, text: str) -> ThinkingDeltaChunk:
        if self._started_at is None:
            self._started_at = self._clock()
        self.text += text
        return ThinkingDeltaChunk(text=text, thinking_millsec=self.elapsed_ms())

    def complete(self, text: str | None = None) -> ThinkingCompleteChunk:
        final = (self.text if text is None else text).strip()
        chunk = ThinkingCompleteChunk(text=final, thinking_millsec=self.elapsed_ms())
        self.reset()
        return chunk

    def reset(self) -> None:
        self._started_at = None
        self.text = ""


async def complete_thinking_spans(
    source: AsyncIterator[Chunk], clock: Callable[[], float] = time.monotonic
) -> AsyncIterator[Chunk]:
    """Stamp thinking deltas and close each span before the content that follows it.

    Vendors that stream reasoning natively only send deltas; this emits the
    matching ``THINKING_COMPLETE``. Spans already closed upstream pass through.
    """
    span = ThinkingSpan(clock)
    async for chunk in source:
        if chunk.type == ChunkType.THINKING_DELTA:
            yield span.add(chunk.text)
        elif chunk.type == ChunkType.THINKING_COMPLETE:
            span.reset()
            yield chunk
        else:
            if span.active and chunk.type in SPAN_ENDING:
                yield span.complete()
            yield chunk
    if span.active:
        yield span.complete()
