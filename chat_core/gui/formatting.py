"""Display helpers for the chat window."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from chat_core.domain.models import Message, TokenUsage


def format_message_timestamp(ts: datetime, now: Optional[datetime] = None) -> str:
    """Return ``HH:MM`` for today's messages, ``Mon DD, HH:MM`` otherwise.

    Both values are compared in local time.
    """

    local = ts.astimezone()
    current = (now or datetime.now(timezone.utc)).astimezone()
    if local.date() == current.date():
        return local.strftime("%H:%M")
    return f"{local.strftime('%b')} {local.day}, {local.strftime('%H:%M')}"


def format_usage(usage: Optional[TokenUsage]) -> str:
    if usage is None:
        return ""
    text = f"tokens: {usage.total_tokens} (prompt {usage.prompt_tokens}, completion {usage.completion_tokens})"
    details = usage.completion_tokens_details
    if details is not None and details.reasoning_tokens:
        text += f", reasoning {details.reasoning_tokens}"
    return text


def message_header(message: Message, now: Optional[datetime] = None) -> str:
    who = "You" if message.sender == "user" else "Assistant"
    header = f"{who} · {format_message_timestamp(message.timestamp, now)}"
    if message.model:
        header += f" · {message.model}"
    return header
