import asyncio
import copy
import unittest
from collections.abc import AsyncIterator, Callable
from typing import Any

from unified_stream.abort import CancellationToken
from unified_stream.config import Settings
from unified_stream.errors import ProviderError, ToolExecutionError
from unified_stream.middleware import THINK_TAG, TagConfig
from unified_stream.orchestrator import ToolCallOrchestrator, ToolLoopState
from unified_stream.providers import OpenAIChatEngine
from unified_stream.tools import CallableToolExecutor
from unified_stream.types import (
    Chunk,
    ChunkType,
    Message,
    Model,
    Provider,
    RequestConfig,
    ToolDef,
)

SEARCH = ToolDef(
    id="srv__search",
    name="search",
    server_id="srv",
    description="Search the web",
    input_schema={"type": "object", "properties": {"q": {"type": "string"}}},
)

USAGE = {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}


def tool_round(call_id: str, name: str, arguments: str) -> list[dict[str, Any]]:
    return [
        {"choices": [{"delta": {"tool_calls": [{"index": 0, "id": call_id, "function": {"name": name, "arguments": arguments}}]}}]},
        {"choices": [{"delta": {}, "finish_reason": "tool_calls"}], "usage": USAGE},
    ]


def text_round(*deltas: str, reasoning: str = "") -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    if reasoning:
        events.append({"choices": [{"delta": {"reasoning_content": reasoning}}]})
    events.extend({"choices": [{"delta": {"content": delta}}]} for delta in deltas)
    events.append({"choices": [{"delta": {}, "finish_reason": "stop"}], "usage": USAGE})
    return events


class ScriptedTransport:
    """Replays one scripted event list per request; the last one repeats."""

    def __init__(self, *scripts: list[Any], on_event: Callable[[int, int], None] | None = None) -> None:
        self.scripts = list(scripts)
        self.payloads: list[dict[str, Any]] = []
        self.on_event = on_event

    def stream(
        self,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        token: CancellationToken | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        script = self.scripts[min(len(self.payloads), len(self.scripts) - 1)]
        self.payloads.append(copy.deepcopy(payload))
        request = len(self.payloads)

        async def _gen() -> AsyncIterator[dict[str, Any]]:
            for position, event in enumerate(script):
                if isinstance(event, Exception):
                    raise event
                yield event
                if self.on_event is not None:
                    self.on_event(request, position)

        return _gen()


class Tick:
    """Clock advancing 100ms on every reading."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 0.1
        return self.now


class Recorder:
    def __init__(self) -> None:
        self.chunks: list[Chunk] = []

    async def __call__(self, chunk: Chunk) -> None:
        self.chunks.append(chunk)

    @property
    def types(self) -> list[ChunkType]:
        return [chunk.type for chunk in self.chunks]

    def of(self, chunk_type: ChunkType) -> list[Chunk]:
        return [chunk for chunk in self.chunks if chunk.type == chunk_type]


async def _search(tool: ToolDef, arguments: Any) -> str:
    return f"result:{arguments['q']}"


def _orchestrator(
    transport: ScriptedTransport,
    model_id: str = "gpt-4o",
    *,
    executor: Any = None,
    tools: tuple[ToolDef, ...] = (SEARCH,),
    config: RequestConfig | None = None,
    max_tool_rounds: int | None = None,
    reasoning_tag: TagConfig | None = None,
) -> ToolCallOrchestrator:
    engine = OpenAIChatEngine(
        Provider(id="openai", type="openai", api_key="sk-test"),
        transport=transport,
        settings=Settings(),
    )
    return ToolCallOrchestrator(
        engine,
        Model(id=model_id, provider="openai"),
        config or RequestConfig(),
        tools=tools,
        executor=executor if executor is not None else CallableToolExecutor(_search),
        max_tool_rounds=max_tool_rounds,
        reasoning_tag=reasoning_tag,
        clock=Tick(),
    )


def _run(orchestrator: ToolCallOrchestrator, token: CancellationToken | None = None) -> tuple[Any, Recorder]:
    recorder = Recorder()
    messages = [Message.from_text("user", "hi")]
    result = asyncio.run(orchestrator.run(messages, token or CancellationToken("m1"), recorder))
    return result, recorder


class ToolLoopTests(unittest.TestCase):
    def test_two_tool_rounds_make_three_requests(self) -> None:
        transport = ScriptedTransport(
            tool_round("call_1", "srv__search", '{"q": "x"}'),
            tool_round("call_2", "search", '{"q": "y"}'),
            text_round("fi", "nal"),
        )
        orchestrator = _orchestrator(transport)
        result, recorder = _run(orchestrator)

        self.assertEqual(len(transport.payloads), 3)
        self.assertEqual(orchestrator.requests, 3)
        self.assertEqual(result.rounds, 2)
        self.assertEqual(result.text, "final")
        self.assertEqual(result.usage.total_tokens, 9)
        self.assertEqual(orchestrator.state, ToolLoopState.DONE)

        self.assertEqual(recorder.types[0], ChunkType.RESPONSE_CREATED)
        self.assertEqual(recorder.types[-1], ChunkType.BLOCK_COMPLETE)
        self.assertEqual(len(recorder.of(ChunkType.TOOL_CALL_PENDING)), 2)
        self.assertEqual(len(recorder.of(ChunkType.TOOL_CALL_COMPLETE)), 2)
        self.assertEqual([c.text for c in recorder.of(ChunkType.TEXT_COMPLETE)], ["final"])
        terminals = [t for t in recorder.types if t in (ChunkType.BLOCK_COMPLETE, ChunkType.ERROR)]
        self.assertEqual(len(terminals), 1)

        second = transport.payloads[1]["messages"]
        self.assertEqual([m["role"] for m in second], ["user", "assistant", "tool"])
        self.assertEqual(second[1]["tool_calls"][0]["id"], "call_1")
        self.assertEqual(second[2], {"role": "tool", "tool_call_id": "call_1", "content": "result:x"})
        self.assertEqual(transport.payloads[0]["tools"][0]["function"]["name"], "srv__search")

    def test_internal_chunks_never_reach_callers(self) -> None:
        transport = ScriptedTransport(tool_round("call_1", "search", '{"q": "x"}'), text_round("ok"))
        _, recorder = _run(_orchestrator(transport))
        self.assertNotIn(ChunkType.TOOL_CALLS_CREATED, recorder.types)
        self.assertNotIn(ChunkType.LLM_RESPONSE_COMPLETE, recorder.types)

    def test_failing_tool_becomes_error_result(self) -> None:
        async def broken(tool: ToolDef, arguments: Any) -> str:
            raise RuntimeError("boom")

        transport = ScriptedTransport(tool_round("call_1", "search", '{"q": "x"}'), text_round("sorry"))
        result, recorder = _run(_orchestrator(transport, executor=CallableToolExecutor(broken)))

        completed = recorder.of(ChunkType.TOOL_CALL_COMPLETE)[0].responses[0]
        self.assertEqual(completed.status, "error")
        self.assertTrue(completed.response.is_error)
        self.assertIn("boom", transport.payloads[1]["messages"][2]["content"])
        self.assertEqual(result.text, "sorry")
        self.assertEqual(recorder.types[-1], ChunkType.BLOCK_COMPLETE)

    def test_tool_execution_error_message_is_passed_back(self) -> None:
        async def refusing(tool: ToolDef, arguments: Any) -> str:
            raise ToolExecutionError(tool.name, "not allowed")

        transport = ScriptedTransport(tool_round("call_1", "search", "{}"), text_round("ok"))
        _run(_orchestrator(transport, executor=CallableToolExecutor(refusing)))
        self.assertEqual(transport.payloads[1]["messages"][2]["content"], "search: not allowed")

    def test_unknown_tool_is_dropped(self) -> None:
        transport = ScriptedTransport(tool_round("call_1", "delete_everything", "{}"), text_round("unused"))
        result, recorder = _run(_orchestrator(transport))
        self.assertEqual(len(transport.payloads), 1)
        self.assertNotIn(ChunkType.TOOL_CALL_PENDING, recorder.types)
        self.assertEqual(recorder.types[-1], ChunkType.BLOCK_COMPLETE)
        self.assertEqual(result.rounds, 0)

    def test_tools_disabled_by_config(self) -> None:
        transport = ScriptedTransport(tool_round("call_1", "search", "{}"))
        orchestrator = _orchestrator(transport, config=RequestConfig(enable_tool_use=False))
        _, recorder = _run(orchestrator)
        self.assertNotIn("tools", transport.payloads[0])
        self.assertEqual(len(transport.payloads), 1)
        self.assertEqual(recorder.types[-1], ChunkType.BLOCK_COMPLETE)

    def test_round_limit_ends_with_error(self) -> None:
        transport = ScriptedTransport(tool_round("call_1", "search", '{"q": "x"}'))
        orchestrator = _orchestrator(transport, max_tool_rounds=1)
        result, recorder = _run(orchestrator)

        self.assertEqual(len(transport.payloads), 2)
        self.assertEqual(recorder.types[-1], ChunkType.ERROR)
        self.assertEqual(recorder.chunks[-1].code, "tool_round_limit")
        self.assertNotIn(ChunkType.BLOCK_COMPLETE, recorder.types)
        self.assertEqual(orchestrator.state, ToolLoopState.ERROR)
        self.assertIsNotNone(result.error)

    def test_provider_error_ends_with_status_code(self) -> None:
        transport = ScriptedTransport([ProviderError("openai", "bad key", status_code=401)])
        result, recorder = _run(_orchestrator(transport))
        self.assertEqual(recorder.types, [ChunkType.RESPONSE_CREATED, ChunkType.ERROR])
        self.assertEqual(recorder.chunks[-1].code, "401")
        self.assertIn("bad key", result.error)

    def test_connection_reset_mid_stream_ends_with_error(self) -> None:
        transport = ScriptedTransport(
            [{"choices": [{"delta": {"content": "Hel"}}]}, ConnectionResetError("peer reset")]
        )
        orchestrator = _orchestrator(transport)
        with self.assertLogs("unified_stream.orchestrator", level="ERROR"):
            result, recorder = _run(orchestrator)

        self.assertEqual(
            recorder.types, [ChunkType.RESPONSE_CREATED, ChunkType.TEXT_DELTA, ChunkType.ERROR]
        )
        self.assertEqual(recorder.chunks[-1].code, "error")
        self.assertIn("peer reset", recorder.chunks[-1].message)
        self.assertEqual(result.error, "peer reset")
        self.assertEqual(orchestrator.state, ToolLoopState.ERROR)

    def test_tool_calls_without_executor_are_not_run(self) -> None:
        transport = ScriptedTransport(tool_round("call_1", "search", '{"q": "x"}'))
        engine = OpenAIChatEngine(
            Provider(id="openai", type="openai", api_key="sk-test"), transport=transport, settings=Settings()
        )
        orchestrator = ToolCallOrchestrator(engine, Model(id="gpt-4o", provider="openai"), RequestConfig(), tools=(SEARCH,))
        result, recorder = _run(orchestrator)

        self.assertEqual(len(transport.payloads), 1)
        self.assertNotIn("tools", transport.payloads[0])
        self.assertNotIn(ChunkType.TOOL_CALL_PENDING, recorder.types)
        self.assertEqual(recorder.types[-1], ChunkType.BLOCK_COMPLETE)
        self.assertIsNone(result.error)

    def test_open_think_tag_closes_once_before_tool_call(self) -> None:
        first = [{"choices": [{"delta": {"content": "<think>abc"}}]}, *tool_round("call_1", "search", '{"q": "x"}')]
        transport = ScriptedTransport(first, text_round("done"))
        result, recorder = _run(_orchestrator(transport, "qwen3-32b", reasoning_tag=THINK_TAG))

        self.assertEqual(len(recorder.of(ChunkType.THINKING_COMPLETE)), 1)
        self.assertLess(
            recorder.types.index(ChunkType.THINKING_COMPLETE), recorder.types.index(ChunkType.TOOL_CALL_PENDING)
        )
        self.assertEqual(recorder.of(ChunkType.THINKING_COMPLETE)[0].text, "abc")
        self.assertEqual(result.text, "done")


class PromptModeTests(unittest.TestCase):
    def test_markup_tool_calls_for_model_without_function_calling(self) -> None:
        seen: list[Any] = []

        async def search(tool: ToolDef, arguments: Any) -> str:
            seen.append(arguments)
            return "42"

        markup = 'Let me check.\n<tool_use>\n  <name>srv__search</name>\n  <arguments>{"q": "x"}</arguments>\n</tool_use>'
        transport = ScriptedTransport(text_round(markup[:20], markup[20:]), text_round("done"))
        orchestrator = _orchestrator(transport, "llama-3-8b", executor=CallableToolExecutor(search))
        self.assertTrue(orchestrator.prompt_mode)
        result, recorder = _run(orchestrator)

        first = transport.payloads[0]
        self.assertNotIn("tools", first)
        self.assertEqual(first["messages"][0]["role"], "system")
        self.assertIn("<name>srv__search</name>", first["messages"][0]["content"])

        second = transport.payloads[1]["messages"]
        self.assertEqual(second[-1]["role"], "user")
        self.assertIn("<result>42</result>", second[-1]["content"])
        self.assertEqual(seen, [{"q": "x"}])
        self.assertEqual([c.text for c in recorder.of(ChunkType.TEXT_COMPLETE)], ["Let me check.", "done"])
        self.assertEqual(result.text, "done")

    def test_prompt_mode_can_be_forced(self) -> None:
        transport = ScriptedTransport(text_round("plain answer"))
        orchestrator = _orchestrator(transport, config=RequestConfig(tool_use_mode="prompt"))
        self.assertTrue(orchestrator.prompt_mode)
        result, _ = _run(orchestrator)
        self.assertEqual(result.text, "plain answer")


class CancellationTests(unittest.TestCase):
    def test_abort_mid_stream_stops_deltas(self) -> None:
        token = CancellationToken("m1")

        def cancel_after_first(request: int, position: int) -> None:
            if position == 0:
                token.cancel()

        transport = ScriptedTransport(text_round("a", "b", "c"), on_event=cancel_after_first)
        result, recorder = _run(_orchestrator(transport), token)

        self.assertEqual(recorder.types, [ChunkType.RESPONSE_CREATED, ChunkType.TEXT_DELTA, ChunkType.ERROR])
        self.assertEqual(recorder.chunks[1].text, "a")
        self.assertTrue(recorder.chunks[-1].is_abort)
        self.assertTrue(result.aborted)

    def test_abort_during_tool_execution_sends_no_more_requests(self) -> None:
        token = CancellationToken("m1")

        async def slow(tool: ToolDef, arguments: Any) -> str:
            token.cancel()
            await asyncio.sleep(10)
            return "late"

        transport = ScriptedTransport(tool_round("call_1", "search", "{}"), text_round("unused"))
        result, recorder = _run(_orchestrator(transport, executor=CallableToolExecutor(slow)), token)

        self.assertEqual(len(transport.payloads), 1)
        self.assertNotIn(ChunkType.TOOL_CALL_COMPLETE, recorder.types)
        self.assertEqual(recorder.chunks[-1].code, "aborted")
        self.assertTrue(result.aborted)

    def test_cancelled_token_never_opens_a_stream(self) -> None:
        token = CancellationToken("m1")
        token.cancel()
        transport = ScriptedTransport(text_round("x"))
        _, recorder = _run(_orchestrator(transport), token)
        self.assertEqual(transport.payloads, [])
        self.assertEqual(recorder.types, [ChunkType.RESPONSE_CREATED, ChunkType.ERROR])


class MetricsTests(unittest.TestCase):
    def test_timings_are_ordered(self) -> None:
        transport = ScriptedTransport(text_round("a", "b", reasoning="hmm"))
        result, recorder = _run(_orchestrator(transport, tools=()))
        metrics = result.metrics
        self.assertGreater(metrics.time_first_token_millsec, 0)
        self.assertLessEqual(metrics.time_first_token_millsec, metrics.time_completion_millsec)
        self.assertGreater(metrics.time_thinking_millsec, 0)
        self.assertLessEqual(metrics.time_thinking_millsec, metrics.time_completion_millsec)
        self.assertEqual(metrics.completion_tokens, 2)
        self.assertEqual(recorder.chunks[-1].metrics, metrics)
        self.assertEqual(result.thinking, "hmm")


if __name__ == "__main__":
    unittest.main()
