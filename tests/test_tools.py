import asyncio
import unittest
from typing import Any

from unified_stream.errors import ToolExecutionError
from unified_stream.tools import (
    CallableToolExecutor,
    build_tool_use_prompt,
    execute_tool_calls,
    format_tool_results,
    parse_tool_use,
    resolve_tool_calls,
    strip_tool_use,
)
from unified_stream.types import RawToolCall, ToolDef, ToolResult

WEATHER = ToolDef(
    id="mcp__weather",
    name="weather",
    description="Current weather",
    input_schema={"type": "object", "properties": {"city": {"type": "string"}}},
)
CLOCK = ToolDef(id="mcp__clock", name="clock")


class ToolPromptTests(unittest.TestCase):
    def test_prompt_lists_tools_and_keeps_user_prompt(self) -> None:
        prompt = build_tool_use_prompt("Be nice.", [WEATHER])
        self.assertIn("<name>mcp__weather</name>", prompt)
        self.assertIn('"city"', prompt)
        self.assertIn("<name>{tool_name}</name>", prompt)
        self.assertTrue(prompt.rstrip().endswith("Be nice."))
        self.assertEqual(build_tool_use_prompt("Be nice.", []), "Be nice.")

    def test_parse_and_strip_markup(self) -> None:
        text = (
            "Checking.\n"
            "<tool_use>\n  <name>mcp__weather</name>\n  <arguments>{\"city\": \"Oslo\"}</arguments>\n</tool_use>\n"
            "<tool_use><name>mcp__clock</name><arguments>not json</arguments></tool_use>"
        )
        calls = parse_tool_use(text)
        self.assertEqual([(c.id, c.name) for c in calls], [("tool_use_0", "mcp__weather"), ("tool_use_1", "mcp__clock")])
        self.assertEqual(calls[0].arguments, {"city": "Oslo"})
        self.assertEqual(calls[1].arguments, "not json")
        self.assertEqual([r.call_id for r in resolve_tool_calls(calls, [WEATHER, CLOCK])], ["tool_use_0", "tool_use_1"])
        self.assertEqual(strip_tool_use(text), "Checking.")
        self.assertEqual(parse_tool_use("no tools here"), [])

    def test_format_results(self) -> None:
        responses = resolve_tool_calls([RawToolCall(id="t0", name="weather")], [WEATHER])
        responses = [responses[0].model_copy(update={"response": ToolResult(content="sunny")})]
        self.assertEqual(
            format_tool_results(responses),
            "<tool_use_result>\n  <name>mcp__weather</name>\n  <result>sunny</result>\n</tool_use_result>",
        )


class ToolExecutionTests(unittest.TestCase):
    def test_resolution_by_id_then_name(self) -> None:
        calls = [
            RawToolCall(id="1", name="mcp__weather"),
            RawToolCall(id="2", name="clock"),
            RawToolCall(id="3", name="missing"),
        ]
        responses = resolve_tool_calls(calls, [WEATHER, CLOCK])
        self.assertEqual([(r.id, r.tool.id, r.status) for r in responses], [("1", "mcp__weather", "pending"), ("2", "mcp__clock", "pending")])

    def test_calls_run_concurrently_and_keep_order(self) -> None:
        started: list[str] = []
        release = asyncio.Event()

        async def tool(definition: ToolDef, arguments: Any) -> Any:
            started.append(definition.name)
            if len(started) == 2:
                release.set()
            await release.wait()
            if definition.name == "clock":
                raise ToolExecutionError("clock", "stopped")
            return {"temp": 21}

        async def scenario() -> list[Any]:
            responses = resolve_tool_calls(
                [RawToolCall(id="1", name="weather"), RawToolCall(id="2", name="clock")], [WEATHER, CLOCK]
            )
            return await asyncio.wait_for(execute_tool_calls(CallableToolExecutor(tool), responses), 1)

        done = asyncio.run(scenario())
        self.assertEqual([r.id for r in done], ["1", "2"])
        self.assertEqual((done[0].status, done[0].response.content), ("done", '{"temp": 21}'))
        self.assertEqual((done[1].status, done[1].response.is_error), ("error", True))

    def test_error_result_from_executor(self) -> None:
        async def tool(definition: ToolDef, arguments: Any) -> ToolResult:
            return ToolResult(content="quota exceeded", is_error=True)

        responses = resolve_tool_calls([RawToolCall(id="1", name="weather")], [WEATHER])
        done = asyncio.run(execute_tool_calls(CallableToolExecutor(tool), responses))
        self.assertEqual(done[0].status, "error")


if __name__ == "__main__":
    unittest.main()
