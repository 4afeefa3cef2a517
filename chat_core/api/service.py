"""对外 API 服务模块。

提供简化的函数接口供上层应用（GUI、脚本）调用。
"""

from typing import Any, Dict, List, Optional

from chat_core.config.settings import settings
from chat_core.infrastructure.logging.logger import logger
from chat_core.session.controller import SessionController


_session: Optional[SessionController] = None


def get_default_session() -> SessionController:
    """获取默认会话实例（单例），首次调用时从本地存储恢复历史。"""
    global _session
    if _session is None:
        _session = SessionController.from_settings(settings)
    return _session


def reset_default_session(session: Optional[SessionController] = None) -> None:
    """替换或丢弃默认会话，主要供测试使用。"""
    global _session
    _session = session


def send_message(user_input: str) -> Optional[Dict[str, Any]]:
    """提交一条用户输入。

    Args:
        user_input: 用户输入内容

    Returns:
        包含用户消息与 bot 消息的字典；输入为空或已有请求在进行中时返回 None
    """
    session = get_default_session()
    bot_msg = session.submit(user_input)
    if bot_msg is None:
        logger.info("Message not submitted", extra={"extra": {"submitting": session.is_submitting}})
        return None
    messages = session.messages
    user_msg = next((m for m in reversed(messages) if m.sender == "user"), None)
    return {
        "user_message": user_msg.to_dict() if user_msg else None,
        "bot_message": bot_msg.to_dict(),
        "is_error": bot_msg.is_error,
        "usage": bot_msg.usage.to_dict() if bot_msg.usage else None,
    }


def get_history() -> List[Dict[str, Any]]:
    """获取完整历史，按追加顺序排列。"""
    return [m.to_dict() for m in get_default_session().messages]


def clear_history() -> None:
    """清空历史与记住的用户名。"""
    get_default_session().clear()
