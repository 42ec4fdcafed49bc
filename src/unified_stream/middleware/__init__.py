"""Stream middleware for reasoning spans."""

from .reasoning import (
    DEFAULT_TAG_RULES,
    HASH_THINKING_TAG,
    KIMI_THINK_TAG,
    THINK_TAG,
    THOUGHT_TAG,
    ReasoningExtractionMiddleware,
    TagConfig,
    TagExtractor,
    select_reasoning_tag,
)
from .thinking import ThinkingSpan, complete_thinking_spans

__all__ = [
    "DEFAULT_TAG_RULES",
    "HASH_THINKING_TAG",
    "KIMI_THINK_TAG",
    "THINK_TAG",
    "THOUGHT_TAG",
    "ReasoningExtractionMiddleware",
    "TagConfig",
    "TagExtractor",
    "ThinkingSpan",
    "complete_thinking_spans",
    "select_reasoning_tag",
]
