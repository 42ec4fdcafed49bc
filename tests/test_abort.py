import asyncio
import unittest
from collections.abc import AsyncIterator

from unified_stream.abort import AbortRegistry, CancellationToken
from unified_stream.errors import AbortError


class AbortRegistryTests(unittest.TestCase):
    def test_cancel_fires_every_callback_once(self) -> None:
        registry = AbortRegistry()
        fired: list[str] = []
        registry.register("m1", lambda: fired.append("a"))
        registry.register("m1", lambda: fired.append("b"))
        registry.register("m2", lambda: fired.append("other"))

        self.assertTrue(registry.cancel("m1"))
        self.assertFalse(registry.cancel("m1"))
        self.assertEqual(fired, ["a", "b"])
        self.assertIn("m2", registry)
        self.assertNotIn("m1", registry)

    def test_cleanup_removes_only_the_given_callback(self) -> None:
        registry = AbortRegistry()
        first, second = (lambda: None), (lambda: None)
        registry.register("m1", first)
        registry.register("m1", second)
        registry.cleanup("m1", first)
        self.assertIn("m1", registry)
        registry.cleanup("m1", second)
        self.assertEqual(len(registry), 0)
        registry.cleanup("missing")

    def test_unknown_message_id(self) -> None:
        self.assertFalse(AbortRegistry().cancel("nope"))


class CancellationTokenTests(unittest.TestCase):
    def test_cancel_is_idempotent(self) -> None:
        token = CancellationToken("m1")
        calls: list[int] = []
        token.add_callback(lambda: calls.append(1))
        token.cancel()
        token.cancel()
        self.assertEqual(calls, [1])
        with self.assertRaises(AbortError):
            token.raise_if_cancelled()

    def test_callback_added_after_cancel_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        calls: list[int] = []
        token.add_callback(lambda: calls.append(1))
        self.assertEqual(calls, [1])

    def test_run_turns_task_cancellation_into_abort(self) -> None:
        async def scenario() -> None:
            token = CancellationToken("m1")

            async def work() -> str:
                await asyncio.sleep(10)
                return "never"

            asyncio.get_running_loop().call_later(0.01, token.cancel)
            await token.run(work())

        with self.assertRaises(AbortError):
            asyncio.run(scenario())

    def test_guard_stops_iteration_after_cancel(self) -> None:
        token = CancellationToken()
        closed: list[bool] = []

        async def numbers() -> AsyncIterator[int]:
            try:
                for number in range(5):
                    yield number
            finally:
                closed.append(True)

        async def scenario() -> list[int]:
            seen: list[int] = []
            async for number in token.guard(numbers()):
                seen.append(number)
                if number == 1:
                    token.cancel()
            return seen

        with self.assertRaises(AbortError):
            asyncio.run(scenario())
        self.assertEqual(closed, [True])


if __name__ == "__main__":
    unittest.main()
