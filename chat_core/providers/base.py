"""Completion Provider 抽象接口。

SessionController 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个端点实现一个 CompletionProvider。
- 负责：把 RemoteInstruction 序列转成 API 请求，并把响应归一化为 CompletionResult。
- 任何失败都必须在这一层变成带 error 的 CompletionResult，不能抛给调用方。
"""

from typing import Optional, Protocol, Sequence

from chat_core.domain.models import CompletionResult, RemoteInstruction


class CompletionProvider(Protocol):
    """Completion 客户端协议。

    - name: Provider 名称，用于日志。
    - complete(instructions, model_name): 执行一次非流式调用。
    """

    name: str

    def complete(self, instructions: Sequence[RemoteInstruction], model_name: Optional[str] = None) -> CompletionResult:
        ...
