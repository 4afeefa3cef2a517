"""从用户消息中识别自我介绍（"I'm Alex"）并记住用户名。

用户名不挂在 Message 上，每次构造请求时根据 (history, 已持久化的名字)
重新计算。只有遍历顺序中第一条匹配的用户消息决定本次结果。
"""

import re
from typing import Iterable, Optional

from chat_core.domain.conversation import HistoryRepository
from chat_core.domain.models import Message


DEFAULT_USER_NAME = "User"

# 兼容 ' ’ ` 三种撇号，以及 "Im" / "I m" 这类省略写法
INTRODUCTION_RE = re.compile(r"\bi['’`]?\s?m\s+([A-Za-z]+)", re.IGNORECASE)


def find_introduced_name(messages: Iterable[Message]) -> Optional[str]:
    """返回第一条匹配自我介绍的用户消息中的名字，没有则返回 None。"""

    for msg in messages:
        if msg.sender != "user":
            continue
        match = INTRODUCTION_RE.search(msg.content)
        if match:
            return match.group(1)
    return None


def extract_user_name(
    history: Iterable[Message],
    persistence: HistoryRepository,
    default: str = DEFAULT_USER_NAME,
) -> str:
    name = find_introduced_name(history)
    if name:
        if persistence.load_user_name() != name:
            persistence.save_user_name(name)
        return name
    return persistence.load_user_name() or default
