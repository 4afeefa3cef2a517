"""会话历史的持久化适配器。

- 历史槽位：Message 列表的 JSON 数组，每次变更整体覆盖（快照语义）。
- 用户名槽位：纯字符串，首次识别到自我介绍时写入，clear() 时删除。

持久化是尽力而为的：写入/删除失败只记日志，不影响内存中的会话；
读取到损坏的数据时按空历史处理。
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from chat_core.domain.conversation import HistoryRepository
from chat_core.domain.exceptions import BusinessError, StoreError
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import KeyValueStore


class HistoryPersistence(HistoryRepository):
    def __init__(self, kv: KeyValueStore, history_key: str = "chat_history", name_key: str = "user_name"):
        self._kv = kv
        self._history_key = history_key
        self._name_key = name_key

    def load(self) -> List[Message]:
        try:
            raw = self._kv.get(self._history_key)
        except StoreError as e:
            self._log(logging.WARNING, "Failed to read chat history", code=e.code, error=e.message)
            return []
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            self._log(logging.WARNING, "Chat history is not valid JSON", error=str(e))
            return []
        if not isinstance(data, list):
            self._log(logging.WARNING, "Chat history is not a list", kind=type(data).__name__)
            return []
        try:
            messages = [self._to_message(item) for item in data]
        except (KeyError, TypeError, ValueError, BusinessError) as e:
            self._log(logging.WARNING, "Chat history contains a malformed message", error=str(e))
            return []
        self._log(logging.INFO, "Loaded chat history", count=len(messages))
        return messages

    def save(self, messages: Sequence[Message]) -> None:
        payload = json.dumps([m.to_dict() for m in messages], ensure_ascii=False)
        try:
            self._kv.set(self._history_key, payload)
        except StoreError as e:
            self._log(logging.ERROR, "Failed to save chat history", code=e.code, error=e.message)

    def clear(self) -> None:
        for key in (self._history_key, self._name_key):
            try:
                self._kv.remove(key)
            except StoreError as e:
                self._log(logging.ERROR, "Failed to clear slot", key=key, code=e.code, error=e.message)

    def load_user_name(self) -> Optional[str]:
        try:
            name = self._kv.get(self._name_key)
        except StoreError as e:
            self._log(logging.WARNING, "Failed to read remembered name", code=e.code, error=e.message)
            return None
        return name or None

    def save_user_name(self, name: str) -> None:
        try:
            self._kv.set(self._name_key, name)
        except StoreError as e:
            self._log(logging.ERROR, "Failed to save remembered name", code=e.code, error=e.message)

    @staticmethod
    def _to_message(item: Any) -> Message:
        if not isinstance(item, dict):
            raise TypeError(f"expected object, got {type(item).__name__}")
        return Message.from_dict(item)

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = {"component": "persistence"}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
