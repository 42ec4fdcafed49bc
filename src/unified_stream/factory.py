"""Selects the engine and stream pipeline for a provider and model."""

from __future__ import annotations

import logging
import re

from unified_stream.capabilities import is_reasoning_model
from unified_stream.capabilities.naming import lower_base_model_name
from unified_stream.config import Settings
from unified_stream.errors import UnsupportedProviderError
from unified_stream.keys import KeyRotator
from unified_stream.middleware.reasoning import TagConfig, select_reasoning_tag
from unified_stream.providers import (
    AnthropicEngine,
    GeminiEngine,
    OpenAIChatEngine,
    OpenAIResponsesEngine,
    ProviderEngine,
    VertexAIEngine,
)
from unified_stream.transport import Transport
from unified_stream.types import Model, Provider

logger = logging.getLogger(__name__)

ENGINES: dict[str, type[ProviderEngine]] = {
    "openai": OpenAIChatEngine,
    "openai-response": OpenAIResponsesEngine,
    "anthropic": AnthropicEngine,
    "gemini": GeminiEngine,
    "vertexai": VertexAIEngine,
}

# models the Responses API does not serve
_CHAT_COMPLETION_ONLY = re.compile(r"^(?:gpt-4o(?:-mini)?-search-preview|o1-mini|o1-preview)(?:-[\w-]+)?$")


def is_chat_completion_only(model: Model) -> bool:
    return bool(_CHAT_COMPLETION_ONLY.match(lower_base_model_name(model.id)))


def engine_class_for(provider: Provider, model: Model | None = None) -> type[ProviderEngine]:
    try:
        engine_class = ENGINES[provider.type]
    except KeyError as exc:
        raise UnsupportedProviderError(provider.type) from exc
    if engine_class is OpenAIResponsesEngine and model is not None and is_chat_completion_only(model):
        logger.debug("Model %s is chat-completion only, using the chat engine", model.id)
        return OpenAIChatEngine
    return engine_class


def create_engine(
    provider: Provider,
    model: Model | None = None,
    *,
    transport: Transport | None = None,
    settings: Settings | None = None,
    keys: KeyRotator | None = None,
) -> ProviderEngine:
    """Build the engine that speaks ``provider``'s wire protocol for ``model``."""
    engine_class = engine_class_for(provider, model)
    return engine_class(provider, transport=transport, settings=settings, keys=keys)


def reasoning_tag_for(engine: ProviderEngine, model: Model) -> TagConfig | None:
    """Tag pair to extract from answer text, or None when reasoning arrives natively."""
    if not engine.extracts_reasoning_tags or not is_reasoning_model(model, engine.provider):
        return None
    return select_reasoning_tag(model)
