"""Provider-agnostic streaming completions with tool calling and reasoning."""

import logging

from .abort import AbortRegistry, CancellationToken
from .client import LLMClient
from .config import Settings, get_settings
from .errors import (
    AbortError,
    EmptyResponseError,
    ProviderError,
    ToolExecutionError,
    ToolRoundLimitError,
    UnifiedStreamError,
    UnsupportedFeatureError,
    UnsupportedProviderError,
)
from .factory import create_engine
from .orchestrator import ToolCallOrchestrator, ToolLoopState
from .tools import CallableToolExecutor, ToolExecutor
from .types import (
    Chunk,
    ChunkType,
    CompletionsResult,
    Message,
    Model,
    Provider,
    RequestConfig,
    ToolDef,
    ToolResult,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AbortError",
    "AbortRegistry",
    "CallableToolExecutor",
    "CancellationToken",
    "Chunk",
    "ChunkType",
    "CompletionsResult",
    "EmptyResponseError",
    "LLMClient",
    "Message",
    "Model",
    "Provider",
    "ProviderError",
    "RequestConfig",
    "Settings",
    "ToolCallOrchestrator",
    "ToolDef",
    "ToolExecutionError",
    "ToolExecutor",
    "ToolLoopState",
    "ToolResult",
    "ToolRoundLimitError",
    "UnifiedStreamError",
    "UnsupportedFeatureError",
    "UnsupportedProviderError",
    "create_engine",
    "get_settings",
]
