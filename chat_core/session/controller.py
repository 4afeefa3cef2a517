"""会话控制器。

串联一次提交的完整流程：

    用户消息入库 → 持久化 → 识别用户名 → 构造指令序列 → 调用 Provider
    → 回答（或错误占位消息）入库 → 持久化

状态机只有 Idle / Submitting 两个状态。提交中再次 submit 直接忽略；
clear() 在任何状态下都可以执行，但不会取消进行中的请求，请求结束后
回答仍会追加到（已被清空的）历史里，即后写者生效。
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple
from uuid import uuid4

from chat_core.config.settings import settings as default_settings
from chat_core.domain.conversation import HistoryRepository, MessageStore
from chat_core.domain.models import CompletionResult, Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.json_store import JsonFileKeyValueStore
from chat_core.infrastructure.storage.persistence import HistoryPersistence
from chat_core.memory.name_extractor import DEFAULT_USER_NAME, extract_user_name
from chat_core.prompts import build_instructions
from chat_core.providers.base import CompletionProvider
from chat_core.providers.openai_client import OpenAIChatClient


FALLBACK_ERROR_TEXT = "Sorry, I encountered an error processing your request."

SessionEvent = Literal["messages", "state"]
Listener = Callable[[SessionEvent, "SessionController"], None]


class SessionController:
    def __init__(
        self,
        store: MessageStore,
        persistence: HistoryRepository,
        provider: CompletionProvider,
        settings: Any = None,
    ):
        self._store = store
        self._persistence = persistence
        self._provider = provider
        self._settings = settings
        self._input_text = ""
        self._submitting = False
        self._guard = threading.Lock()
        self._listeners: List[Listener] = []

    @classmethod
    def restore(
        cls,
        persistence: HistoryRepository,
        provider: CompletionProvider,
        settings: Any = None,
    ) -> "SessionController":
        """会话启动时从持久化槽位恢复历史。"""
        return cls(MessageStore.restore(persistence), persistence, provider, settings)

    @classmethod
    def from_settings(cls, settings: Any = None) -> "SessionController":
        cfg = settings or default_settings
        persistence = HistoryPersistence(
            JsonFileKeyValueStore(root=cfg.storage_root),
            history_key=cfg.history_key,
            name_key=cfg.name_key,
        )
        return cls.restore(persistence, OpenAIChatClient(cfg), cfg)

    # ---- 状态 ----

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self._store.all()

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def input_text(self) -> str:
        return self._input_text

    def set_input(self, text: str) -> None:
        self._input_text = text

    def clear_input(self) -> None:
        self._input_text = ""

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ---- 操作 ----

    def submit(self, text: Optional[str] = None) -> Optional[Message]:
        """提交一条用户输入，返回追加的 bot 消息。

        输入为空（去掉首尾空白后）或已有提交在进行中时不做任何事，返回 None。
        不传 text 时使用输入缓冲区的内容。
        """

        raw = self._input_text if text is None else text
        content = (raw or "").strip()
        if not content:
            return None
        if not self._guard.acquire(blocking=False):
            self._log(logging.INFO, "Submit ignored while another submission is in flight", {})
            return None

        start_time = time.time()
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}"}
        try:
            user_msg = Message.user(content, timestamp=self._store.next_timestamp())
            self._store.append(user_msg)
            self._input_text = ""
            self._submitting = True
            self._log(logging.INFO, "Stored user message", log_ctx, message_id=user_msg.id)
            self._notify("messages")
            self._notify("state")

            result = self._request_completion(content, log_ctx)
            bot_msg = self._to_bot_message(result)
            self._store.append(bot_msg)
            self._log(
                logging.INFO,
                "Stored bot message",
                log_ctx,
                message_id=bot_msg.id,
                is_error=bot_msg.is_error,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            self._notify("messages")
            return bot_msg
        finally:
            self._submitting = False
            self._guard.release()
            self._notify("state")

    def clear(self) -> None:
        """清空历史与记住的用户名。不取消进行中的请求。"""
        self._store.clear()
        self._log(logging.INFO, "Cleared chat history", {}, in_flight=self._submitting)
        self._notify("messages")

    # ---- 内部 ----

    def _request_completion(
        self,
        content: str,
        log_ctx: Dict[str, Any],
    ) -> Optional[CompletionResult]:
        # 历史包含刚追加的用户消息，"I'm Alex" 当轮即可生效
        history = self._store.all()
        user_name = extract_user_name(
            history,
            self._persistence,
            default=getattr(self._settings, "default_user_name", None) or DEFAULT_USER_NAME,
        )
        instructions = build_instructions(
            history,
            content,
            getattr(self._settings, "system_prompt", None),
            user_name,
        )
        self._log(
            logging.INFO,
            "Calling provider",
            log_ctx,
            provider=getattr(self._provider, "name", None),
            instruction_count=len(instructions),
        )
        try:
            return self._provider.complete(instructions, getattr(self._settings, "model_name", None))
        except Exception:
            logger.exception("Provider raised during completion", extra={"extra": dict(log_ctx)})
            return None

    def _to_bot_message(self, result: Optional[CompletionResult]) -> Message:
        timestamp = self._store.next_timestamp()
        if result is None or not result.ok:
            return Message.error(FALLBACK_ERROR_TEXT, timestamp=timestamp)
        return Message.bot(
            result.message,
            timestamp=timestamp,
            usage=result.usage,
            model=result.model,
            system_fingerprint=result.system_fingerprint,
        )

    def _notify(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.exception("Session listener failed", extra={"extra": {"event": event}})

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
