"""Vendor engines for unified_stream."""

from .anthropic import AnthropicEngine
from .base import ProviderEngine, RoundOutput, format_api_host
from .gemini import GeminiEngine, VertexAIEngine
from .openai import OpenAIChatEngine, OpenAIResponsesEngine

__all__ = [
    "AnthropicEngine",
    "GeminiEngine",
    "OpenAIChatEngine",
    "OpenAIResponsesEngine",
    "ProviderEngine",
    "RoundOutput",
    "VertexAIEngine",
    "format_api_host",
]
