"""Async client tying providers, engines and the tool loop together."""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Sequence

from unified_stream.abort import AbortRegistry
from unified_stream.capabilities import CAPABILITY_KINDS, classify, is_non_chat_model
from unified_stream.config import Settings, get_settings
from unified_stream.errors import EmptyResponseError, UnsupportedFeatureError, UnsupportedProviderError
from unified_stream.factory import create_engine, reasoning_tag_for
from unified_stream.keys import KeyRotator
from unified_stream.messages import filter_messages
from unified_stream.orchestrator import ToolCallOrchestrator
from unified_stream.providers.base import ProviderEngine
from unified_stream.tools import ToolExecutor
from unified_stream.transport import Transport
from unified_stream.types import (
    Chunk,
    ChunkType,
    CompletionsResult,
    Message,
    Model,
    Provider,
    RequestConfig,
    ToolDef,
)

logger = logging.getLogger(__name__)

OnChunk = Callable[[Chunk], Awaitable[None] | None]
OnFilterMessages = Callable[[list[Message]], Awaitable[None] | None]


async def _maybe_await(value: object) -> None:
    if inspect.isawaitable(value):
        await value


class LLMClient:
    """High-level entry point for streaming completions against configured providers."""

    def __init__(
        self,
        providers: Iterable[Provider] = (),
        *,
        executor: ToolExecutor | None = None,
        settings: Settings | None = None,
        transport: Transport | None = None,
        registry: AbortRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self.executor = executor
        self.registry = registry or AbortRegistry()
        self._transport = transport
        self._clock = clock
        self._providers: dict[str, Provider] = {}
        self._rotators: dict[str, KeyRotator] = {}
        for provider in providers:
            self.register_provider(provider)

    def register_provider(self, provider: Provider) -> None:
        self._providers[provider.id] = provider
        self._rotators[provider.id] = KeyRotator(provider.api_key)

    def get_provider(self, provider_id: str) -> Provider:
        """Return a provider by id."""
        try:
            provider = self._providers[provider_id]
        except KeyError as exc:
            raise UnsupportedProviderError(provider_id) from exc
        if not provider.enabled:
            raise UnsupportedProviderError(provider_id)
        return provider

    def capabilities(self, model: Model) -> dict[str, bool]:
        """Return every capability decision for ``model``."""
        provider = self._providers.get(model.provider)
        return {kind: classify(kind, model, provider) for kind in CAPABILITY_KINDS}

    def engine_for(self, model: Model) -> ProviderEngine:
        provider = self.get_provider(model.provider)
        return create_engine(
            provider,
            model,
            transport=self._transport,
            settings=self.settings,
            keys=self._rotators[provider.id],
        )

    async def _release(self, engine: ProviderEngine) -> None:
        # injected transports belong to the caller
        if self._transport is None:
            await engine.aclose()

    def abort(self, message_id: str) -> bool:
        """Cancel the in-flight call keyed by ``message_id``."""
        return self.registry.cancel(message_id)

    async def completions(
        self,
        messages: Sequence[Message],
        config: RequestConfig,
        model: Model,
        tools: Sequence[ToolDef] | None = None,
        on_chunk: OnChunk | None = None,
        on_filter_messages: OnFilterMessages | None = None,
        *,
        message_id: str | None = None,
    ) -> CompletionsResult:
        """Stream one completions call, tool rounds included.

        ``on_chunk`` receives every public chunk in order, ending with exactly
        one ``BLOCK_COMPLETE`` or ``ERROR``. The call can be cancelled with
        ``abort(message_id)``; ``message_id`` defaults to the id of the last
        message in the window.
        """
        provider = self.get_provider(model.provider)
        if is_non_chat_model(model, provider):
            raise UnsupportedFeatureError(f"chat completions with {model.id}")

        context_count = config.context_count
        if context_count is None:
            context_count = self.settings.default_context_count
        window = filter_messages(messages, context_count)
        if on_filter_messages is not None:
            await _maybe_await(on_filter_messages(list(window)))

        if message_id is None:
            message_id = window[-1].id if window else (messages[-1].id if messages else "")

        async def emit(chunk: Chunk) -> None:
            if on_chunk is not None:
                await _maybe_await(on_chunk(chunk))

        engine = self.engine_for(model)
        orchestrator = ToolCallOrchestrator(
            engine,
            model,
            config,
            tools=tools or (),
            executor=self.executor,
            reasoning_tag=reasoning_tag_for(engine, model),
            max_tool_rounds=self.settings.max_tool_rounds,
            clock=self._clock,
        )
        token = self.registry.create_token(message_id)
        try:
            return await orchestrator.run(window, token, emit)
        finally:
            self.registry.cleanup(message_id, token.cancel)
            await self._release(engine)

    async def check(self, model: Model) -> None:
        """Health check: one short non-streaming request that must produce content."""
        engine = self.engine_for(model)
        config = RequestConfig(stream_output=False, enable_tool_use=False)
        conversation = engine.convert_messages(model, [Message.from_text("user", "hi")])
        payload = engine.build_payload(model, config, conversation)
        content = ""
        try:
            adapter = engine.create_adapter()
            async for chunk in adapter.adapt(engine.open_stream(model, config, payload)):
                if chunk.type in (ChunkType.TEXT_DELTA, ChunkType.THINKING_DELTA):
                    content += chunk.text
        finally:
            await self._release(engine)
        if not content.strip():
            raise EmptyResponseError(engine.provider.id, model.id)
        logger.debug("Health check for %s/%s passed", engine.provider.id, model.id)
