"""Provider-agnostic request, message and chunk models."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant", "tool"]
ReasoningEffort = Literal["none", "minimal", "low", "medium", "high", "auto"]
ToolUseMode = Literal["function", "prompt"]
ToolCallStatus = Literal["pending", "invoking", "done", "error"]
CapabilityKind = Literal[
    "embedding",
    "rerank",
    "vision",
    "reasoning",
    "function_calling",
    "web_search",
    "text_to_image",
    "image_generation",
]
ProviderType = Literal[
    "openai",
    "openai-response",
    "anthropic",
    "gemini",
    "vertexai",
]


class ModelCapabilityOverride(BaseModel):
    """A capability flag set (or explicitly unset) by the user."""

    model_config = ConfigDict(frozen=True)

    type: CapabilityKind
    is_user_selected: bool | None = None


class Model(BaseModel):
    """A model offered by a provider. Immutable for the duration of a request."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    provider: str = ""
    group: str = ""
    capabilities: tuple[ModelCapabilityOverride, ...] = ()

    def user_override(self, kind: CapabilityKind) -> bool | None:
        """Return the explicit user choice for ``kind``, if any."""
        for capability in self.capabilities:
            if capability.type == kind and capability.is_user_selected is not None:
                return capability.is_user_selected
        return None


class Provider(BaseModel):
    """Connection settings for one configured vendor endpoint."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: ProviderType = "openai"
    name: str = ""
    api_key: str = ""
    api_host: str = ""
    enabled: bool = True
    is_system: bool = False


class RequestConfig(BaseModel):
    """Assistant-level settings applied to one completions call."""

    prompt: str = ""
    temperature: float | None = None
    top_p: float | None = None
    reasoning_effort: ReasoningEffort | None = None
    max_tokens: int | None = None
    context_count: int | None = None
    stream_output: bool = True
    enable_tool_use: bool = True
    enable_web_search: bool = False
    enable_generate_image: bool = False
    tool_use_mode: ToolUseMode = "function"
    custom_parameters: dict[str, Any] = Field(default_factory=dict)


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    type: Literal["image"] = "image"
    url: str | None = None
    # base64 payload without the data: prefix
    data: str | None = None
    mime_type: str = "image/png"


class FileBlock(BaseModel):
    type: Literal["file"] = "file"
    name: str
    content: str = ""
    mime_type: str = "text/plain"


ContentBlock = Annotated[Union[TextBlock, ImageBlock, FileBlock], Field(discriminator="type")]


class Message(BaseModel):
    """Single chat message made of ordered content blocks."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    role: Role
    blocks: list[ContentBlock] = Field(default_factory=list)

    @classmethod
    def from_text(cls, role: Role, text: str, **kwargs: Any) -> Message:
        return cls(role=role, blocks=[TextBlock(text=text)], **kwargs)

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.blocks if isinstance(block, TextBlock))

    @property
    def images(self) -> list[ImageBlock]:
        return [block for block in self.blocks if isinstance(block, ImageBlock)]

    @property
    def files(self) -> list[FileBlock]:
        return [block for block in self.blocks if isinstance(block, FileBlock)]

    def is_empty(self) -> bool:
        return not self.text.strip() and not self.images and not self.files


class ToolDef(BaseModel):
    """An externally executed tool (MCP tool) exposed for function calling."""

    id: str
    name: str
    server_id: str = ""
    description: str | None = None
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolResult(BaseModel):
    """Outcome of a tool execution as fed back to the model."""

    content: str = ""
    is_error: bool = False


class RawToolCall(BaseModel):
    """A tool invocation as requested by the model, before resolution."""

    id: str
    name: str
    # parsed JSON, or the raw argument text when it is not valid JSON
    arguments: Any = Field(default_factory=dict)
    raw_arguments: str = ""


class ToolCallResponse(BaseModel):
    """A resolved tool call tracked through execution."""

    id: str
    tool: ToolDef
    arguments: Any = None
    status: ToolCallStatus = "pending"
    response: ToolResult | None = None
    # id echoed back to the vendor with the result; markup calls carry their generated tool_use_N id
    call_id: str | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class Metrics(BaseModel):
    completion_tokens: int = 0
    time_first_token_millsec: int = 0
    time_completion_millsec: int = 0
    time_thinking_millsec: int = 0


class WebSearchSource(str, Enum):
    OPENAI = "openai"
    OPENAI_RESPONSE = "openai-response"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    PERPLEXITY = "perplexity"


class Citation(BaseModel):
    url: str
    title: str | None = None
    snippet: str | None = None


class ChunkType(str, Enum):
    RESPONSE_CREATED = "response.created"
    TEXT_DELTA = "text.delta"
    TEXT_COMPLETE = "text.complete"
    THINKING_DELTA = "thinking.delta"
    THINKING_COMPLETE = "thinking.complete"
    IMAGE_CREATED = "image.created"
    IMAGE_COMPLETE = "image.complete"
    WEB_SEARCH_COMPLETE = "web_search.complete"
    TOOL_CALL_PENDING = "tool_call.pending"
    TOOL_CALL_COMPLETE = "tool_call.complete"
    BLOCK_COMPLETE = "block.complete"
    ERROR = "error"
    # internal: consumed by the orchestrator, never delivered to callers
    TOOL_CALLS_CREATED = "tool_calls.created"
    LLM_RESPONSE_COMPLETE = "llm_response.complete"


class _Chunk(BaseModel):
    model_config = ConfigDict(frozen=True)


class ResponseCreatedChunk(_Chunk):
    type: Literal[ChunkType.RESPONSE_CREATED] = ChunkType.RESPONSE_CREATED


class TextDeltaChunk(_Chunk):
    type: Literal[ChunkType.TEXT_DELTA] = ChunkType.TEXT_DELTA
    text: str


class TextCompleteChunk(_Chunk):
    type: Literal[ChunkType.TEXT_COMPLETE] = ChunkType.TEXT_COMPLETE
    text: str


class ThinkingDeltaChunk(_Chunk):
    type: Literal[ChunkType.THINKING_DELTA] = ChunkType.THINKING_DELTA
    text: str
    thinking_millsec: int = 0


class ThinkingCompleteChunk(_Chunk):
    type: Literal[ChunkType.THINKING_COMPLETE] = ChunkType.THINKING_COMPLETE
    text: str
    thinking_millsec: int = 0


class ImageCreatedChunk(_Chunk):
    type: Literal[ChunkType.IMAGE_CREATED] = ChunkType.IMAGE_CREATED


class ImageCompleteChunk(_Chunk):
    type: Literal[ChunkType.IMAGE_COMPLETE] = ChunkType.IMAGE_COMPLETE
    # urls or data: urls
    images: list[str] = Field(default_factory=list)


class WebSearchCompleteChunk(_Chunk):
    type: Literal[ChunkType.WEB_SEARCH_COMPLETE] = ChunkType.WEB_SEARCH_COMPLETE
    results: list[Citation] = Field(default_factory=list)
    source: WebSearchSource


class ToolCallPendingChunk(_Chunk):
    type: Literal[ChunkType.TOOL_CALL_PENDING] = ChunkType.TOOL_CALL_PENDING
    responses: list[ToolCallResponse]


class ToolCallCompleteChunk(_Chunk):
    type: Literal[ChunkType.TOOL_CALL_COMPLETE] = ChunkType.TOOL_CALL_COMPLETE
    responses: list[ToolCallResponse]


class BlockCompleteChunk(_Chunk):
    type: Literal[ChunkType.BLOCK_COMPLETE] = ChunkType.BLOCK_COMPLETE
    usage: Usage | None = None
    metrics: Metrics | None = None


class ErrorChunk(_Chunk):
    type: Literal[ChunkType.ERROR] = ChunkType.ERROR
    message: str
    code: str | None = None

    @property
    def is_abort(self) -> bool:
        return self.code == "aborted"


class ToolCallsCreatedChunk(_Chunk):
    type: Literal[ChunkType.TOOL_CALLS_CREATED] = ChunkType.TOOL_CALLS_CREATED
    tool_calls: list[RawToolCall]


class LLMResponseCompleteChunk(_Chunk):
    type: Literal[ChunkType.LLM_RESPONSE_COMPLETE] = ChunkType.LLM_RESPONSE_COMPLETE
    usage: Usage | None = None
    finish_reason: str | None = None
    # vendor-native assistant output (content blocks, parts or output items)
    raw_output: list[dict[str, Any]] | None = None


Chunk = Annotated[
    Union[
        ResponseCreatedChunk,
        TextDeltaChunk,
        TextCompleteChunk,
        ThinkingDeltaChunk,
        ThinkingCompleteChunk,
        ImageCreatedChunk,
        ImageCompleteChunk,
        WebSearchCompleteChunk,
        ToolCallPendingChunk,
        ToolCallCompleteChunk,
        BlockCompleteChunk,
        ErrorChunk,
        ToolCallsCreatedChunk,
        LLMResponseCompleteChunk,
    ],
    Field(discriminator="type"),
]

TERMINAL_CHUNK_TYPES = frozenset({ChunkType.BLOCK_COMPLETE, ChunkType.ERROR})
INTERNAL_CHUNK_TYPES = frozenset({ChunkType.TOOL_CALLS_CREATED, ChunkType.LLM_RESPONSE_COMPLETE})


class CompletionsResult(BaseModel):
    """Summary returned once a completions call has terminated."""

    text: str = ""
    thinking: str = ""
    usage: Usage | None = None
    metrics: Metrics | None = None
    rounds: int = 0
    error: str | None = None
    aborted: bool = False
