"""Per-vendor stream adapters for unified_stream."""

from .anthropic import AnthropicStreamAdapter
from .base import StreamAdapter, ToolCallAccumulator, parse_tool_arguments
from .gemini import GeminiStreamAdapter
from .openai import OpenAIChatStreamAdapter, OpenAIResponsesStreamAdapter

__all__ = [
    "AnthropicStreamAdapter",
    "GeminiStreamAdapter",
    "OpenAIChatStreamAdapter",
    "OpenAIResponsesStreamAdapter",
    "StreamAdapter",
    "ToolCallAccumulator",
    "parse_tool_arguments",
]
