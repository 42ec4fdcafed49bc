"""Vendor engine interface: request building and conversation bookkeeping."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from unified_stream.abort import CancellationToken
from unified_stream.adapters.base import StreamAdapter
from unified_stream.config import Settings, get_settings
from unified_stream.keys import KeyRotator
from unified_stream.transport import HttpxSSETransport, Transport
from unified_stream.types import (
    FileBlock,
    Message,
    Model,
    Provider,
    RawToolCall,
    RequestConfig,
    ToolCallResponse,
    ToolDef,
    Usage,
)

logger = logging.getLogger(__name__)

VendorMessage = dict[str, Any]


@dataclass
class RoundOutput:
    """What one vendor response produced, as needed to continue the conversation."""

    text: str = ""
    thinking: str = ""
    tool_calls: list[RawToolCall] = field(default_factory=list)
    usage: Usage | None = None
    finish_reason: str | None = None
    raw_output: list[dict[str, Any]] | None = None


def format_api_host(host: str, version: str = "v1") -> str:
    """Append the API version unless the host already names one.

    A trailing slash opts out, for gateways that mount the API elsewhere.
    """
    if host.endswith("/"):
        return host.rstrip("/")
    if re.search(r"/v\d+(?:beta|alpha)?\d*$", host):
        return host
    return f"{host}/{version}"


def file_as_text(block: FileBlock) -> str:
    return f"{block.name}\n{block.content}"


def arguments_json(call: ToolCallResponse) -> str:
    if isinstance(call.arguments, str):
        return call.arguments
    return json.dumps(call.arguments if call.arguments is not None else {}, ensure_ascii=False)


def arguments_object(call: ToolCallResponse) -> dict[str, Any]:
    """Arguments as an object, for vendors that reject non-object inputs."""
    if isinstance(call.arguments, dict):
        return call.arguments
    if call.arguments in (None, ""):
        return {}
    return {"input": call.arguments}


class ProviderEngine(ABC):
    """One vendor wire protocol.

    Engines turn canonical messages into the vendor's conversation format,
    build request payloads and open the response stream. The tool loop keeps
    the conversation as vendor messages so the assistant turn can be echoed
    back exactly as the vendor produced it.
    """

    name: ClassVar[str]
    default_api_host: ClassVar[str] = ""
    api_version: ClassVar[str] = "v1"
    # whether inline <think> tags should be extracted for reasoning models
    extracts_reasoning_tags: ClassVar[bool] = False

    def __init__(
        self,
        provider: Provider,
        *,
        transport: Transport | None = None,
        settings: Settings | None = None,
        keys: KeyRotator | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or get_settings()
        self._keys = keys if keys is not None else KeyRotator(provider.api_key)
        # one rotation step per engine
        self.api_key = self._keys.next_key()
        self._transport = transport or HttpxSSETransport(timeout_s=self.settings.timeout_s, provider_name=self.name)

    @property
    def base_url(self) -> str:
        return format_api_host(self.provider.api_host or self.default_api_host, self.api_version)

    async def aclose(self) -> None:
        """Close the transport if it holds network resources."""
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    @abstractmethod
    def create_adapter(self) -> StreamAdapter:
        """Fresh adapter for one response stream."""
        raise NotImplementedError

    @abstractmethod
    def endpoint(self, model: Model, stream: bool) -> str:
        raise NotImplementedError

    @abstractmethod
    def headers(self) -> dict[str, str]:
        raise NotImplementedError

    @abstractmethod
    def convert_message(self, model: Model, message: Message) -> VendorMessage:
        raise NotImplementedError

    def convert_messages(self, model: Model, messages: Sequence[Message]) -> list[VendorMessage]:
        return [self.convert_message(model, message) for message in messages]

    @abstractmethod
    def build_payload(
        self,
        model: Model,
        config: RequestConfig,
        conversation: Sequence[VendorMessage],
        *,
        system_prompt: str = "",
        tools: Sequence[ToolDef] = (),
    ) -> dict[str, Any]:
        """Request body for one round; ``tools`` are declared natively when given."""
        raise NotImplementedError

    @abstractmethod
    def assistant_messages(self, output: RoundOutput, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        """Assistant turn carrying the tool calls that are about to be answered."""
        raise NotImplementedError

    @abstractmethod
    def tool_result_messages(self, calls: Sequence[ToolCallResponse]) -> list[VendorMessage]:
        raise NotImplementedError

    def text_message(self, role: str, text: str) -> VendorMessage:
        """Plain text turn, used for prompt-mode tool use."""
        return {"role": role, "content": text}

    def open_stream(
        self,
        model: Model,
        config: RequestConfig,
        payload: dict[str, Any],
        token: CancellationToken | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        url = self.endpoint(model, config.stream_output)
        logger.debug("Opening %s request to %s for model %s", self.name, url, model.id)
        return self._transport.stream(url, self.headers(), payload, token)

    def max_tokens(self, config: RequestConfig) -> int:
        return config.max_tokens or self.settings.default_max_tokens
