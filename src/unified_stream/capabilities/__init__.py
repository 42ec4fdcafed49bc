"""Model capability classification."""

from .budgets import TokenLimit, find_token_limit
from .classifier import (
    CAPABILITY_KINDS,
    classify,
    is_embedding_model,
    is_function_calling_model,
    is_image_generation_model,
    is_non_chat_model,
    is_reasoning_model,
    is_rerank_model,
    is_text_to_image_model,
    is_vision_model,
    is_web_search_model,
    rule_table,
    supports_reasoning_effort,
    supports_thinking_token,
)
from .effort import supported_reasoning_efforts, thinking_budget, thinking_model_type
from .naming import ModelView, lower_base_model_name
from .rules import Rule, RuleTable

__all__ = [
    "CAPABILITY_KINDS",
    "ModelView",
    "Rule",
    "RuleTable",
    "TokenLimit",
    "classify",
    "find_token_limit",
    "is_embedding_model",
    "is_function_calling_model",
    "is_image_generation_model",
    "is_non_chat_model",
    "is_reasoning_model",
    "is_rerank_model",
    "is_text_to_image_model",
    "is_vision_model",
    "is_web_search_model",
    "lower_base_model_name",
    "rule_table",
    "supported_reasoning_efforts",
    "supports_reasoning_effort",
    "supports_thinking_token",
    "thinking_budget",
    "thinking_model_type",
]
