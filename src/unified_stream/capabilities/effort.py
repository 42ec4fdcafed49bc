"""Reasoning effort options and their translation into vendor request fields."""

from __future__ import annotations

import logging
from typing import Any

from unified_stream.capabilities.budgets import find_token_limit
from unified_stream.capabilities.classifier import (
    GEMINI_FLASH_PATTERN,
    is_claude_reasoning,
    is_deepseek_hybrid,
    is_doubao_thinking_auto,
    is_doubao_thinking_token,
    is_gemini3,
    is_gemini_thinking_token,
    is_gpt51_series,
    is_gpt5_series,
    is_grok_reasoning_effort,
    is_hunyuan_thinking_token,
    is_openai_deep_research,
    is_perplexity_reasoning_effort,
    is_qwen_always_think,
    is_qwen_thinking_token,
    is_reasoning_model,
    is_zhipu_thinking_token,
    supports_reasoning_effort,
)
from unified_stream.capabilities.naming import ModelView
from unified_stream.capabilities.rules import by_name, id_matches
from unified_stream.types import Model, Provider, ReasoningEffort

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096

EFFORT_RATIO: dict[str, float] = {
    "none": 0.01,
    "minimal": 0.05,
    "low": 0.05,
    "medium": 0.5,
    "high": 0.8,
    "auto": 2,
}

SUPPORTED_REASONING_EFFORT: dict[str, tuple[str, ...]] = {
    "default": ("low", "medium", "high"),
    "o": ("low", "medium", "high"),
    "openai_deep_research": ("medium",),
    "gpt5": ("minimal", "low", "medium", "high"),
    "gpt5_codex": ("low", "medium", "high"),
    "gpt5_1": ("none", "low", "medium", "high"),
    "gpt5_1_codex": ("none", "medium", "high"),
    "gpt5pro": ("high",),
    "grok": ("low", "high"),
    "grok4_fast": ("auto",),
    "gemini": ("low", "medium", "high", "auto"),
    "gemini3": ("low", "medium", "high"),
    "gemini_pro": ("low", "medium", "high", "auto"),
    "qwen": ("low", "medium", "high"),
    "qwen_thinking": ("low", "medium", "high"),
    "doubao": ("auto", "high"),
    "doubao_no_auto": ("high",),
    "doubao_after_251015": ("minimal", "low", "medium", "high"),
    "hunyuan": ("auto",),
    "zhipu": ("auto",),
    "perplexity": ("low", "medium", "high"),
    "deepseek_hybrid": ("auto",),
}

# Families whose thinking can also be switched off entirely.
_DISABLEABLE = frozenset(
    {"default", "grok4_fast", "gemini", "qwen", "doubao", "doubao_no_auto", "hunyuan", "zhipu", "deepseek_hybrid"}
)


def _thinking_model_type(view: ModelView) -> str:
    base = view.base_id
    if is_openai_deep_research(view):
        return "openai_deep_research"
    if is_gpt51_series(view):
        return "gpt5_1_codex" if "codex" in base else "gpt5_1"
    if is_gpt5_series(view):
        if "codex" in base:
            return "gpt5_codex"
        return "gpt5pro" if "gpt-5-pro" in base else "gpt5"
    if id_matches(r"^o\d+(?:-[\w-]+)?$")(view) and base not in ("o1-mini", "o1-preview"):
        return "o"
    if "grok-4-fast" in base and "non-reasoning" not in base:
        return "grok4_fast"
    if is_gemini_thinking_token(view):
        if is_gemini3(view):
            return "gemini3"
        return "gemini" if id_matches(GEMINI_FLASH_PATTERN)(view) else "gemini_pro"
    if is_grok_reasoning_effort(view):
        return "grok"
    if is_qwen_thinking_token(view):
        return "qwen"
    if is_qwen_always_think(view):
        return "qwen_thinking"
    if is_doubao_thinking_token(view):
        if is_doubao_thinking_auto(view):
            return "doubao"
        if id_matches(r"doubao-seed-1-6-(?:lite-)?251015")(view):
            return "doubao_after_251015"
        return "doubao_no_auto"
    if is_hunyuan_thinking_token(view):
        return "hunyuan"
    if is_perplexity_reasoning_effort(view):
        return "perplexity"
    if is_zhipu_thinking_token(view):
        return "zhipu"
    if is_deepseek_hybrid(view):
        return "deepseek_hybrid"
    return "default"


def thinking_model_type(model: Model, provider: Provider | None = None) -> str:
    """Family key used to look up the effort options a model accepts."""
    view = ModelView.of(model, provider)
    result = _thinking_model_type(view)
    if result == "default" and view.name:
        return _thinking_model_type(view.with_name_as_id())
    return result


def supported_reasoning_efforts(model: Model, provider: Provider | None = None) -> tuple[str, ...]:
    """Effort values the UI may offer for this model, including ``none`` when thinking can be disabled."""
    if not is_reasoning_model(model, provider):
        return ()
    family = thinking_model_type(model, provider)
    options = SUPPORTED_REASONING_EFFORT[family]
    if family in _DISABLEABLE and "none" not in options:
        return ("none", *options)
    return options


def _coerce_effort(effort: str, model: Model, provider: Provider | None) -> str:
    options = SUPPORTED_REASONING_EFFORT[thinking_model_type(model, provider)]
    if effort in options:
        return effort
    if effort == "minimal" and "low" in options:
        return "low"
    if effort == "auto" and "medium" in options:
        return "medium"
    return options[-1]


def thinking_budget(model: Model, effort: ReasoningEffort, max_tokens: int | None = None) -> int | None:
    """Budget tokens for ``effort`` inside the model's token limit, or None if it has no budget."""
    limit = find_token_limit(model.id)
    if limit is None:
        return None
    ratio = EFFORT_RATIO[effort]
    if effort == "auto":
        ratio = EFFORT_RATIO["medium"]
    budget = int((limit.max - limit.min) * ratio + limit.min)
    if max_tokens:
        budget = min(budget, max_tokens)
    return max(budget, limit.min)


def openai_chat_reasoning_params(
    model: Model, provider: Provider | None, effort: ReasoningEffort | None
) -> dict[str, Any]:
    """Reasoning fields for OpenAI-compatible chat completion endpoints."""
    if not is_reasoning_model(model, provider) or effort is None:
        return {}
    view = ModelView.of(model, provider)
    provider_id = view.provider_id

    if is_openai_deep_research(view):
        return {"reasoning_effort": "medium"}

    if effort == "none":
        if provider_id == "openrouter":
            if is_gpt51_series(view):
                return {"reasoning": {"effort": "none"}}
            return {"reasoning": {"enabled": False, "exclude": True}}
        if is_qwen_thinking_token(view) or is_hunyuan_thinking_token(view):
            return {"enable_thinking": False}
        if is_gemini_thinking_token(view):
            if id_matches(GEMINI_FLASH_PATTERN)(view):
                return {"extra_body": {"google": {"thinking_config": {"thinking_budget": 0}}}}
            logger.warning("Model %s cannot disable reasoning; sending no reasoning params", model.id)
            return {}
        if is_doubao_thinking_token(view) or is_zhipu_thinking_token(view):
            return {"thinking": {"type": "disabled"}}
        if is_gpt51_series(view):
            return {"reasoning_effort": "none"}
        logger.warning("Model %s has no known way to disable reasoning", model.id)
        return {}

    if provider_id == "openrouter":
        return {"reasoning": {"effort": _coerce_effort(effort, model, provider)}}

    if supports_reasoning_effort(model, provider):
        return {"reasoning_effort": _coerce_effort(effort, model, provider)}

    if is_qwen_thinking_token(view):
        params: dict[str, Any] = {"enable_thinking": True}
        budget = thinking_budget(model, effort)
        if budget is not None:
            params["thinking_budget"] = budget
        return params

    if is_hunyuan_thinking_token(view) or is_deepseek_hybrid(view):
        return {"enable_thinking": True}

    if is_doubao_thinking_token(view) or by_name(is_doubao_thinking_token)(view):
        if effort == "auto" and is_doubao_thinking_auto(view):
            return {"thinking": {"type": "auto"}}
        return {"thinking": {"type": "enabled"}}

    if is_zhipu_thinking_token(view):
        return {"thinking": {"type": "enabled"}}

    if is_gemini_thinking_token(view):
        budget = -1 if effort == "auto" else thinking_budget(model, effort)
        return {
            "extra_body": {
                "google": {"thinking_config": {"thinking_budget": budget, "include_thoughts": True}}
            }
        }

    if is_claude_reasoning(view):
        budget = thinking_budget(model, effort)
        if budget is not None:
            return {"thinking": {"type": "enabled", "budget_tokens": budget}}

    return {}


def openai_responses_reasoning_params(
    model: Model, provider: Provider | None, effort: ReasoningEffort | None
) -> dict[str, Any]:
    """Reasoning fields for the OpenAI Responses API."""
    if effort is None or not supports_reasoning_effort(model, provider):
        return {}
    if effort == "none" and "none" not in SUPPORTED_REASONING_EFFORT[thinking_model_type(model, provider)]:
        return {}
    return {"reasoning": {"effort": _coerce_effort(effort, model, provider), "summary": "auto"}}


def anthropic_thinking_params(
    model: Model, effort: ReasoningEffort | None, max_tokens: int | None = None
) -> dict[str, Any]:
    """``thinking`` block for the Anthropic Messages API."""
    view = ModelView.of(model)
    if effort is None or not is_claude_reasoning(view):
        return {}
    if effort == "none":
        return {"thinking": {"type": "disabled"}}
    ratio = EFFORT_RATIO[effort if effort != "auto" else "medium"]
    ceiling = int((max_tokens or DEFAULT_MAX_TOKENS) * ratio)
    budget = thinking_budget(model, effort) or 1024
    return {"thinking": {"type": "enabled", "budget_tokens": max(1024, min(budget, ceiling))}}


def gemini_thinking_config(model: Model, effort: ReasoningEffort | None) -> dict[str, Any]:
    """``thinkingConfig`` for the Gemini generateContent API."""
    view = ModelView.of(model)
    if effort is None or not is_gemini_thinking_token(view):
        return {}
    if is_gemini3(view):
        level = "low" if effort in ("none", "minimal", "low") else "high"
        return {"thinkingConfig": {"thinkingLevel": level, "includeThoughts": True}}
    if effort == "none":
        if id_matches(GEMINI_FLASH_PATTERN)(view):
            return {"thinkingConfig": {"thinkingBudget": 0}}
        return {}
    if effort == "auto":
        return {"thinkingConfig": {"thinkingBudget": -1, "includeThoughts": True}}
    budget = thinking_budget(model, effort)
    config: dict[str, Any] = {"includeThoughts": True}
    if budget is not None:
        config["thinkingBudget"] = budget
    return {"thinkingConfig": config}
