"""Round-robin selection over comma-joined API keys."""

from __future__ import annotations

import itertools
import threading


def split_keys(api_key: str) -> list[str]:
    return [key.strip() for key in api_key.split(",") if key.strip()]


class KeyRotator:
    """Hands out one key per call, cycling through every configured key.

    The cursor lives on the instance, so two rotators built from the same
    keys rotate independently.
    """

    def __init__(self, api_key: str) -> None:
        self._keys = split_keys(api_key)
        self._cursor = itertools.cycle(self._keys) if self._keys else None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    def next_key(self) -> str:
        if self._cursor is None:
            return ""
        with self._lock:
            return next(self._cursor)
