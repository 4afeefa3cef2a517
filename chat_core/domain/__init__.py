"""领域层模型与协议。

包含：
- models: Message / RemoteInstruction / CompletionResult 等统一模型。
- conversation: 只追加的 MessageStore 与 HistoryRepository 抽象。
- exceptions: 业务异常类型定义。
"""
