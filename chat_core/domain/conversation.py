import threading
from datetime import datetime
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import Message, utcnow
from chat_core.infrastructure.logging.logger import logger


class HistoryRepository(Protocol):
    def load(self) -> List[Message]:
        ...

    def save(self, messages: Sequence[Message]) -> None:
        ...

    def clear(self) -> None:
        ...

    def load_user_name(self) -> Optional[str]:
        ...

    def save_user_name(self, name: str) -> None:
        ...


class MessageStore:
    """内存中的只追加消息日志。

    每次 append/clear 都在同一把锁内同步触发持久化，调用方不会观察到
    内存与持久化快照长期不一致的状态。
    """

    def __init__(self, persistence: HistoryRepository, messages: Optional[Sequence[Message]] = None):
        self._persistence = persistence
        self._messages: List[Message] = []
        for message in messages or []:
            self._check_append(message)
            self._messages.append(message)
        self._lock = threading.RLock()

    @classmethod
    def restore(cls, persistence: HistoryRepository) -> "MessageStore":
        """从持久化快照恢复；快照违反 id 唯一或时间有序时按空历史处理。"""
        try:
            return cls(persistence, persistence.load())
        except ValidationError as e:
            logger.warning(
                "Discarding persisted history that breaks ordering",
                extra={"extra": {"code": e.code, "error": e.message}},
            )
            return cls(persistence)

    def append(self, message: Message) -> None:
        with self._lock:
            self._check_append(message)
            self._messages.append(message)
            self._persistence.save(tuple(self._messages))

    def _check_append(self, message: Message) -> None:
        if any(m.id == message.id for m in self._messages):
            raise ValidationError(code="DUPLICATE_MESSAGE_ID", message=message.id)
        last = self._messages[-1] if self._messages else None
        if last is not None and message.timestamp < last.timestamp:
            raise ValidationError(
                code="OUT_OF_ORDER_MESSAGE",
                message=f"{message.id} is older than {last.id}",
            )

    def all(self) -> Tuple[Message, ...]:
        with self._lock:
            return tuple(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages = []
            self._persistence.clear()

    def next_timestamp(self) -> datetime:
        """当前时间与最后一条消息时间取较大者，保证时间戳单调不减。"""
        now = utcnow()
        with self._lock:
            if self._messages and self._messages[-1].timestamp > now:
                return self._messages[-1].timestamp
        return now

    @property
    def last(self) -> Optional[Message]:
        with self._lock:
            return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.all())
