"""Per-request cancellation tokens and the message-id keyed abort registry."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

from unified_stream.errors import AbortError

T = TypeVar("T")

AbortCallback = Callable[[], Any]

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation signal shared by every round of one call."""

    def __init__(self, message_id: str | None = None) -> None:
        self.message_id = message_id
        self._cancelled = False
        self._callbacks: list[AbortCallback] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Abort callback failed for message %s", self.message_id)

    def add_callback(self, callback: AbortCallback) -> Callable[[], None]:
        """Run ``callback`` on cancellation; returns a function that unregisters it."""
        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AbortError(self.message_id)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` in a task that is cancelled when the token fires.

        Cancelling the task unwinds any in-flight ``async with`` transport
        blocks, so open connections are closed rather than abandoned.
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise AbortError(self.message_id)
        task = asyncio.ensure_future(awaitable)
        remove = self.add_callback(task.cancel)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise AbortError(self.message_id) from None
            raise
        finally:
            remove()

    async def guard(self, source: AsyncIterator[T]) -> AsyncIterator[T]:
        """Re-yield ``source`` checking the token around every suspension point."""
        iterator = source.__aiter__()
        try:
            while True:
                self.raise_if_cancelled()
                try:
                    item = await iterator.__anext__()
                except StopAsyncIteration:
                    return
                self.raise_if_cancelled()
                yield item
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()


class AbortRegistry:
    """Maps message ids to the abort callbacks of their in-flight requests."""

    def __init__(self) -> None:
        self._entries: dict[str, list[AbortCallback]] = {}

    def register(self, message_id: str, callback: AbortCallback) -> None:
        self._entries.setdefault(message_id, []).append(callback)

    def cancel(self, message_id: str) -> bool:
        """Fire and drop every callback for ``message_id``. Returns False if none were registered."""
        callbacks = self._entries.pop(message_id, None)
        if not callbacks:
            return False
        logger.debug("Aborting %d request(s) for message %s", len(callbacks), message_id)
        for callback in callbacks:
            callback()
        return True

    def cleanup(self, message_id: str, callback: AbortCallback | None = None) -> None:
        """Forget ``callback`` (or every callback) registered for ``message_id``."""
        if callback is None:
            self._entries.pop(message_id, None)
            return
        callbacks = self._entries.get(message_id)
        if not callbacks:
            return
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            del self._entries[message_id]

    def create_token(self, message_id: str) -> CancellationToken:
        token = CancellationToken(message_id)
        self.register(message_id, token.cancel)
        return token

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
