"""Completion Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护端点与默认模型配置 (registry)。
- 提供具体实现 (openai_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.providers.base import CompletionProvider
from chat_core.providers.openai_client import OpenAIChatClient
from chat_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> CompletionProvider:
    """根据名称创建 Provider 实例，未知名称抛出 KeyError。

    registry 中的端点都兼容 OpenAI chat/completions 协议，统一由 OpenAIChatClient 适配。
    """

    config = get_provider_config(name or "openai")
    return OpenAIChatClient(settings, config)
