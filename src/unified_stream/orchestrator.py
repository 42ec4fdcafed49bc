"""The tool-call loop driving one completions call across vendor rounds."""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

from unified_stream.abort import CancellationToken
from unified_stream.capabilities import is_function_calling_model
from unified_stream.errors import AbortError, ProviderError, ToolRoundLimitError, UnifiedStreamError
from unified_stream.metrics import MetricsRecorder
from unified_stream.middleware.reasoning import ReasoningExtractionMiddleware, TagConfig
from unified_stream.middleware.thinking import complete_thinking_spans
from unified_stream.providers.base import ProviderEngine, RoundOutput, VendorMessage
from unified_stream.tools import (
    ToolExecutor,
    build_tool_use_prompt,
    execute_tool_calls,
    format_tool_results,
    parse_tool_use,
    resolve_tool_calls,
    strip_tool_use,
)
from unified_stream.types import (
    BlockCompleteChunk,
    Chunk,
    ChunkType,
    CompletionsResult,
    ErrorChunk,
    Message,
    Model,
    RequestConfig,
    ResponseCreatedChunk,
    TextCompleteChunk,
    ToolCallCompleteChunk,
    ToolCallPendingChunk,
    ToolDef,
)

logger = logging.getLogger(__name__)

Emit = Callable[[Chunk], Awaitable[None]]

# chunks that count as model output for latency metrics
_CONTENT_CHUNKS = frozenset(
    {
        ChunkType.TEXT_DELTA,
        ChunkType.IMAGE_CREATED,
        ChunkType.IMAGE_COMPLETE,
        ChunkType.WEB_SEARCH_COMPLETE,
    }
)


class ToolLoopState(str, enum.Enum):
    AWAITING_RESPONSE = "awaiting_response"
    HAS_TOOL_CALLS = "has_tool_calls"
    EXECUTING_TOOLS = "executing_tools"
    RESUBMITTING = "resubmitting"
    DONE = "done"
    ERROR = "error"


class ToolCallOrchestrator:
    """Runs vendor rounds until the model stops calling tools.

    Every round streams through adapter, reasoning extraction and thinking
    completion before its chunks reach ``emit``. Tool calls of a round run
    concurrently; their results are appended to the vendor conversation and
    the request is resubmitted. The caller sees exactly one terminal chunk,
    ``BLOCK_COMPLETE`` or ``ERROR``, however the call ends.
    """

    def __init__(
        self,
        engine: ProviderEngine,
        model: Model,
        config: RequestConfig,
        *,
        tools: Sequence[ToolDef] = (),
        executor: ToolExecutor | None = None,
        reasoning_tag: TagConfig | None = None,
        max_tool_rounds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.model = model
        self.config = config
        self.tools = list(tools) if config.enable_tool_use and executor is not None else []
        self.executor = executor
        self.reasoning_tag = reasoning_tag
        self.max_tool_rounds = max_tool_rounds if max_tool_rounds is not None else engine.settings.max_tool_rounds
        self._clock = clock
        self.state = ToolLoopState.AWAITING_RESPONSE
        self.requests = 0
        self.rounds = 0

    @property
    def prompt_mode(self) -> bool:
        """Whether tools are described in the prompt instead of declared natively."""
        if not self.tools:
            return False
        return self.config.tool_use_mode == "prompt" or not is_function_calling_model(
            self.model, self.engine.provider
        )

    async def run(self, messages: Sequence[Message], token: CancellationToken, emit: Emit) -> CompletionsResult:
        recorder = MetricsRecorder(self._clock)
        recorder.start()
        result = CompletionsResult()
        await emit(ResponseCreatedChunk())

        conversation = self.engine.convert_messages(self.model, messages)
        terminal: Chunk
        try:
            await token.run(self._loop(conversation, token, emit, recorder, result))
        except AbortError as exc:
            self.state = ToolLoopState.ERROR
            logger.info("Completions for message %s aborted", token.message_id)
            result.aborted = True
            result.error = str(exc)
            terminal = ErrorChunk(message=str(exc), code="aborted")
        except ToolRoundLimitError as exc:
            self.state = ToolLoopState.ERROR
            logger.warning("%s", exc)
            result.error = str(exc)
            terminal = ErrorChunk(message=str(exc), code="tool_round_limit")
        except ProviderError as exc:
            self.state = ToolLoopState.ERROR
            logger.error("Provider request failed: %s", exc)
            result.error = str(exc)
            code = str(exc.status_code) if exc.status_code is not None else "provider_error"
            terminal = ErrorChunk(message=str(exc), code=code)
        except UnifiedStreamError as exc:
            self.state = ToolLoopState.ERROR
            logger.error("Completions failed: %s", exc)
            result.error = str(exc)
            terminal = ErrorChunk(message=str(exc), code="error")
        except Exception as exc:
            self.state = ToolLoopState.ERROR
            logger.exception("Completions for message %s failed unexpectedly", token.message_id)
            result.error = str(exc) or type(exc).__name__
            terminal = ErrorChunk(message=result.error, code="error")
        else:
            self.state = ToolLoopState.DONE
            completion_tokens = result.usage.completion_tokens if result.usage else 0
            result.metrics = recorder.finish(completion_tokens)
            terminal = BlockCompleteChunk(usage=result.usage, metrics=result.metrics)

        if result.metrics is None:
            result.metrics = recorder.finish(result.usage.completion_tokens if result.usage else 0)
        result.rounds = self.rounds
        await emit(terminal)
        return result

    async def _loop(
        self,
        conversation: list[VendorMessage],
        token: CancellationToken,
        emit: Emit,
        recorder: MetricsRecorder,
        result: CompletionsResult,
    ) -> None:
        prompt_mode = self.prompt_mode
        if prompt_mode:
            system_prompt = build_tool_use_prompt(self.config.prompt, self.tools)
            native_tools: Sequence[ToolDef] = ()
        else:
            system_prompt = self.config.prompt
            native_tools = self.tools

        while True:
            self.state = ToolLoopState.AWAITING_RESPONSE
            payload = self.engine.build_payload(
                self.model, self.config, conversation, system_prompt=system_prompt, tools=native_tools
            )
            self.requests += 1
            output = await self._stream_round(payload, token, emit, recorder)

            if output.usage is not None:
                result.usage = output.usage if result.usage is None else result.usage + output.usage
            answer = strip_tool_use(output.text) if prompt_mode else output.text
            # the call's text is the last round's answer
            result.text = answer
            result.thinking = output.thinking
            if answer:
                await emit(TextCompleteChunk(text=answer))

            calls = parse_tool_use(output.text) if prompt_mode else output.tool_calls
            responses = resolve_tool_calls(calls, self.tools) if self.tools else []
            executor = self.executor
            if not responses or executor is None:
                return

            if self.rounds >= self.max_tool_rounds:
                raise ToolRoundLimitError(self.max_tool_rounds)

            self.state = ToolLoopState.HAS_TOOL_CALLS
            await emit(ToolCallPendingChunk(responses=responses))

            self.state = ToolLoopState.EXECUTING_TOOLS
            completed = await execute_tool_calls(executor, responses)
            token.raise_if_cancelled()
            await emit(ToolCallCompleteChunk(responses=completed))

            self.state = ToolLoopState.RESUBMITTING
            if prompt_mode:
                conversation.append(self.engine.text_message("assistant", output.text))
                conversation.append(self.engine.text_message("user", format_tool_results(completed)))
            else:
                conversation.extend(self.engine.assistant_messages(output, completed))
                conversation.extend(self.engine.tool_result_messages(completed))
            self.rounds += 1

    def _pipeline(self, payload: dict, token: CancellationToken) -> AsyncIterator[Chunk]:
        events = self.engine.open_stream(self.model, self.config, payload, token)
        adapter = self.engine.create_adapter()
        chunks = adapter.adapt(token.guard(events))
        chunks = ReasoningExtractionMiddleware(self.reasoning_tag, self._clock).process(chunks)
        return complete_thinking_spans(chunks, self._clock)

    async def _stream_round(
        self, payload: dict, token: CancellationToken, emit: Emit, recorder: MetricsRecorder
    ) -> RoundOutput:
        output = RoundOutput()
        async for chunk in token.guard(self._pipeline(payload, token)):
            if chunk.type == ChunkType.TOOL_CALLS_CREATED:
                output.tool_calls.extend(chunk.tool_calls)
                continue
            if chunk.type == ChunkType.LLM_RESPONSE_COMPLETE:
                output.usage = chunk.usage
                output.finish_reason = chunk.finish_reason
                output.raw_output = chunk.raw_output
                continue

            if chunk.type == ChunkType.THINKING_DELTA:
                recorder.mark_event(thinking=True)
                output.thinking += chunk.text
            elif chunk.type in _CONTENT_CHUNKS:
                recorder.mark_event()
                if chunk.type == ChunkType.TEXT_DELTA:
                    output.text += chunk.text
            await emit(chunk)
        return output

