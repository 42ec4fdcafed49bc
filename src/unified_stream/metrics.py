"""Latency measurement for one completions call."""

from __future__ import annotations

import time
from collections.abc import Callable

from unified_stream.types import Metrics


def _ms(start: float | None, end: float | None) -> int:
    if start is None or end is None:
        return 0
    return max(0, int((end - start) * 1000))


class MetricsRecorder:
    """Records monotonic timestamps; derived values are computed once at ``finish``."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self.started_at: float | None = None
        self.first_event_at: float | None = None
        self.thinking_started_at: float | None = None
        self.first_after_thinking_at: float | None = None
        self.finished_at: float | None = None
        self._thinking = False

    def start(self) -> None:
        self.started_at = self._clock()

    def mark_event(self, *, thinking: bool = False) -> None:
        """Record a content event; ``thinking`` marks it as part of a thinking span."""
        now = self._clock()
        if self.first_event_at is None:
            self.first_event_at = now
        if thinking:
            if self.thinking_started_at is None:
                self.thinking_started_at = now
            self._thinking = True
        elif self._thinking:
            self._thinking = False
            self.first_after_thinking_at = now

    def finish(self, completion_tokens: int = 0) -> Metrics:
        self.finished_at = self._clock()
        if self.started_at is None:
            self.started_at = self.finished_at
        thinking_end = self.first_after_thinking_at
        if self._thinking:
            thinking_end = self.finished_at
        return Metrics(
            completion_tokens=completion_tokens,
            time_first_token_millsec=_ms(self.started_at, self.first_event_at),
            time_completion_millsec=_ms(self.started_at, self.finished_at),
            time_thinking_millsec=_ms(self.thinking_started_at, thinking_end),
        )
