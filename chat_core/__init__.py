"""Chat Core 顶层包。

该包提供带记忆的对话客户端核心实现：
配置加载、领域模型、本地持久化、用户名记忆、请求构造、
Completion Provider 适配以及会话控制器。
"""

from chat_core.session import FALLBACK_ERROR_TEXT, SessionController

__all__ = ["FALLBACK_ERROR_TEXT", "SessionController"]
