"""Extract tagged thinking spans from a single mixed text stream.

Some vendors return the model's deliberation inline, e.g.
``<think>...</think>answer``. ``TagExtractor`` splits such a stream into
thinking and answer text while tolerating tags that straddle two deltas;
``ReasoningExtractionMiddleware`` turns the split into canonical chunks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass

from unified_stream.middleware.thinking import SPAN_ENDING, ThinkingSpan
from unified_stream.types import Chunk, ChunkType, Model, TextDeltaChunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagConfig:
    opening_tag: str
    closing_tag: str
    separator: str = "\n"


THINK_TAG = TagConfig("<think>", "</think>")
THOUGHT_TAG = TagConfig("<thought>", "</thought>")
HASH_THINKING_TAG = TagConfig("###Thinking", "###Response")
KIMI_THINK_TAG = TagConfig("◁think▷", "◁/think▷")

# Ordered (model id substring, tag) pairs; first match wins.
DEFAULT_TAG_RULES: tuple[tuple[str, TagConfig], ...] = (
    ("qwen3", THINK_TAG),
    ("gemini-2.5", THOUGHT_TAG),
    ("kimi-vl-a3b-thinking", KIMI_THINK_TAG),
)


def select_reasoning_tag(
    model: Model,
    rules: Iterable[tuple[str, TagConfig]] = DEFAULT_TAG_RULES,
    default: TagConfig = THINK_TAG,
) -> TagConfig:
    """Pick the tag pair a model uses to mark its thinking."""
    model_id = model.id.lower()
    for needle, tag in rules:
        if needle in model_id:
            return tag
    return default


@dataclass(frozen=True)
class ExtractionResult:
    content: str
    is_tag_content: bool = False
    # set on the result that closes a tag span
    complete: bool = False
    tag_content_extracted: str | None = None


def _partial_prefix_len(buffer: str, tag: str) -> int:
    """Length of the longest suffix of ``buffer`` that is a proper prefix of ``tag``."""
    for size in range(min(len(buffer), len(tag) - 1), 0, -1):
        if tag.startswith(buffer[-size:]):
            return size
    return 0


class TagExtractor:
    """Stateful scanner splitting text into tagged and untagged content."""

    def __init__(self, config: TagConfig) -> None:
        self.config = config
        self._buffer = ""
        self._inside = False
        self._tag_content = ""
        self._strip_separator = False

    @property
    def inside_tag(self) -> bool:
        return self._inside

    def process_text(self, text: str) -> list[ExtractionResult]:
        self._buffer += text
        results: list[ExtractionResult] = []
        while self._buffer:
            tag = self.config.closing_tag if self._inside else self.config.opening_tag
            index = self._buffer.find(tag)
            if index == -1:
                keep = _partial_prefix_len(self._buffer, tag)
                emit_upto = len(self._buffer) - keep
                self._emit(self._buffer[:emit_upto], results)
                self._buffer = self._buffer[emit_upto:]
                break
            self._emit(self._buffer[:index], results)
            self._buffer = self._buffer[index + len(tag) :]
            if self._inside:
                results.append(
                    ExtractionResult(content="", complete=True, tag_content_extracted=self._tag_content)
                )
                self._tag_content = ""
            self._inside = not self._inside
            self._strip_separator = True
        return results

    def finalize(self) -> list[ExtractionResult]:
        """Flush buffered text; an unclosed span is reported as complete."""
        results: list[ExtractionResult] = []
        self._emit(self._buffer, results)
        self._buffer = ""
        if self._inside:
            results.append(ExtractionResult(content="", complete=True, tag_content_extracted=self._tag_content))
            self._tag_content = ""
            self._inside = False
        return results

    def _emit(self, content: str, results: list[ExtractionResult]) -> None:
        separator = self.config.separator
        if self._strip_separator and separator:
            while content.startswith(separator):
                content = content[len(separator) :]
        if not content:
            return
        self._strip_separator = False
        if self._inside:
            self._tag_content += content
        results.append(ExtractionResult(content=content, is_tag_content=self._inside))


class ReasoningExtractionMiddleware:
    """Convert tagged ``TEXT_DELTA`` chunks into thinking and answer chunks.

    With ``tag=None`` the middleware is a pass-through.
    """

    def __init__(self, tag: TagConfig | None, clock: Callable[[], float] = time.monotonic) -> None:
        self.tag = tag
        self._clock = clock

    async def process(self, source: AsyncIterator[Chunk]) -> AsyncIterator[Chunk]:
        if self.tag is None:
            async for chunk in source:
                yield chunk
            return

        extractor = TagExtractor(self.tag)
        span = ThinkingSpan(self._clock)
        async for chunk in source:
            if chunk.type == ChunkType.TEXT_DELTA:
                for converted in self._convert(extractor.process_text(chunk.text), span):
                    yield converted
                continue
            if chunk.type in SPAN_ENDING:
                # an open tag ends where non-text output starts
                for converted in self._convert(extractor.finalize(), span):
                    yield converted
            yield chunk
        for converted in self._convert(extractor.finalize(), span):
            yield converted

    @staticmethod
    def _convert(results: Sequence[ExtractionResult], span: ThinkingSpan) -> Iterator[Chunk]:
        for result in results:
            if result.complete:
                if span.active and (result.tag_content_extracted or "").strip():
                    yield span.complete(result.tag_content_extracted)
                else:
                    span.reset()
            elif result.is_tag_content:
                yield span.add(result.content)
            else:
                yield TextDeltaChunk(text=result.content)
