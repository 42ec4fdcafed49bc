"""Thinking token budgets for vendors that expose an explicit reasoning budget."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class TokenLimit:
    min: int
    max: int


# Ordered, first match wins. A ``None`` limit stops the lookup for families
# that match a broader pattern further down but have no budget control.
THINKING_TOKEN_TABLE: tuple[tuple[str, TokenLimit | None], ...] = (
    # Gemini
    (r"gemini-2\.5-flash-lite.*$", TokenLimit(512, 24_576)),
    (r"gemini-.*-flash.*$", TokenLimit(0, 24_576)),
    (r"gemini-.*-pro.*$", TokenLimit(128, 32_768)),
    # Qwen; qwen-plus raised its chain-of-thought limit to 81_920 from 2025-07-28
    (r"qwen3-235b-a22b-thinking-2507$", TokenLimit(0, 81_920)),
    (r"qwen3-30b-a3b-thinking-2507$", TokenLimit(0, 81_920)),
    (r"qwen3-vl-235b-a22b-thinking$", TokenLimit(0, 81_920)),
    (r"qwen3-vl-30b-a3b-thinking$", TokenLimit(0, 81_920)),
    (r"qwen-plus-2025-07-14$", TokenLimit(0, 38_912)),
    (r"qwen-plus-2025-04-28$", TokenLimit(0, 38_912)),
    (r"qwen3-1\.7b$", TokenLimit(0, 30_720)),
    (r"qwen3-0\.6b$", TokenLimit(0, 30_720)),
    (r"qwen-plus.*$", TokenLimit(0, 81_920)),
    (r"qwen-turbo.*$", TokenLimit(0, 38_912)),
    (r"qwen-flash.*$", TokenLimit(0, 81_920)),
    (r"qwen3-max.*$", None),
    (r"qwen3-.*$", TokenLimit(1024, 38_912)),
    # Claude
    (r"claude-3[.-]7.*sonnet.*$", TokenLimit(1024, 64_000)),
    (r"claude-(?:haiku|sonnet)-4.*$", TokenLimit(1024, 64_000)),
    (r"claude-opus-4-1.*$", TokenLimit(1024, 32_000)),
    (r"claude-opus-4.*$", TokenLimit(1024, 32_000)),
)

_COMPILED = tuple((re.compile(pattern, re.IGNORECASE), limit) for pattern, limit in THINKING_TOKEN_TABLE)


def find_token_limit(model_id: str) -> TokenLimit | None:
    """Resolve the thinking budget range for ``model_id``, or None if unknown."""
    for pattern, limit in _COMPILED:
        if pattern.search(model_id):
            return limit
    return None
