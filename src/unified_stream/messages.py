"""Selection of the conversation window sent to the vendor."""

from __future__ import annotations

from collections.abc import Sequence

from unified_stream.types import Message


def take_context(messages: Sequence[Message], context_count: int) -> list[Message]:
    """Keep the newest ``context_count`` turns plus the message being answered."""
    if context_count < 0:
        return list(messages)
    return list(messages[-(context_count + 1) :])


def drop_empty(messages: Sequence[Message]) -> list[Message]:
    return [message for message in messages if not message.is_empty()]


def start_on_user(messages: Sequence[Message]) -> list[Message]:
    """Drop leading turns until the first user message; vendors reject anything else."""
    for index, message in enumerate(messages):
        if message.role == "user":
            return list(messages[index:])
    return []


def filter_messages(messages: Sequence[Message], context_count: int) -> list[Message]:
    """Window used for one completions call.

    System messages are not part of the window; the system prompt travels
    in the request config.
    """
    chat = [message for message in messages if message.role != "system"]
    return start_on_user(drop_empty(take_context(chat, context_count)))
