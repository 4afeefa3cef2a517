"""会话消息与远端调用的统一数据模型。

本模块定义 chat_core 内部共享的标准数据结构：

- Message: 会话中的一条消息（user / bot），也是持久化的基本单元。
- TokenUsage: 端点返回的 token 统计信息。
- RemoteInstruction: 发给远端模型的 {role, content} 指令。
- CompletionResult: 一次远端调用归一化后的结果（成功或失败二选一）。

持久化格式沿用前端客户端的 camelCase 字段名，保证历史记录可以互相读取。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional
from uuid import uuid4

from chat_core.domain.exceptions import ValidationError


Sender = Literal["user", "bot"]
# 远端模型接受的角色（developer 即 system 指令）
Role = Literal["developer", "user", "assistant"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    ts = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class CompletionTokensDetails:
    """completion token 的细分统计（仅当端点提供时存在）。"""

    reasoning_tokens: int = 0
    accepted_prediction_tokens: int = 0
    rejected_prediction_tokens: int = 0


@dataclass(frozen=True)
class TokenUsage:
    """端点返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    completion_tokens_details: Optional[CompletionTokensDetails] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "TokenUsage":
        """把端点的 snake_case usage 字段逐项映射过来。"""

        details_raw = payload.get("completion_tokens_details")
        details = None
        if isinstance(details_raw, dict):
            details = CompletionTokensDetails(
                reasoning_tokens=int(details_raw.get("reasoning_tokens") or 0),
                accepted_prediction_tokens=int(details_raw.get("accepted_prediction_tokens") or 0),
                rejected_prediction_tokens=int(details_raw.get("rejected_prediction_tokens") or 0),
            )
        return cls(
            prompt_tokens=int(payload.get("prompt_tokens") or 0),
            completion_tokens=int(payload.get("completion_tokens") or 0),
            total_tokens=int(payload.get("total_tokens") or 0),
            completion_tokens_details=details,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }
        if self.completion_tokens_details is not None:
            d = self.completion_tokens_details
            data["completionTokensDetails"] = {
                "reasoningTokens": d.reasoning_tokens,
                "acceptedPredictionTokens": d.accepted_prediction_tokens,
                "rejectedPredictionTokens": d.rejected_prediction_tokens,
            }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenUsage":
        details_raw = data.get("completionTokensDetails")
        details = None
        if isinstance(details_raw, dict):
            details = CompletionTokensDetails(
                reasoning_tokens=int(details_raw.get("reasoningTokens", 0)),
                accepted_prediction_tokens=int(details_raw.get("acceptedPredictionTokens", 0)),
                rejected_prediction_tokens=int(details_raw.get("rejectedPredictionTokens", 0)),
            )
        return cls(
            prompt_tokens=int(data["promptTokens"]),
            completion_tokens=int(data["completionTokens"]),
            total_tokens=int(data["totalTokens"]),
            completion_tokens_details=details,
        )


@dataclass(frozen=True)
class RemoteInstruction:
    """发给远端模型的一条指令。"""

    role: Role
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Message:
    """会话中的一条消息。

    - id: 创建时生成的唯一标识，不会复用。
    - content: 文本内容；只有失败的 bot 消息才允许为空。
    - sender: "user" 或 "bot"。
    - timestamp: 创建时间（UTC），在 MessageStore 中按追加顺序单调不减。
    - is_error: 仅 bot 消息可为 True，表示一次失败的 completion。
    - usage / model / system_fingerprint: 仅成功的 bot 消息携带。

    Message 创建后不可变，违反不变量时构造直接抛出 ValidationError。
    """

    id: str
    content: str
    sender: Sender
    timestamp: datetime = field(default_factory=utcnow)
    is_error: bool = False
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None
    system_fingerprint: Optional[str] = None

    def __post_init__(self) -> None:
        if self.sender not in ("user", "bot"):
            raise ValidationError(code="INVALID_SENDER", message=f"Unknown sender: {self.sender!r}")
        if self.sender == "user":
            if self.is_error:
                raise ValidationError(code="INVALID_MESSAGE", message="Only bot messages can be errors")
            if not self.content:
                raise ValidationError(code="EMPTY_MESSAGE", message="User messages must not be empty")
        has_meta = self.usage is not None or self.model is not None or self.system_fingerprint is not None
        if has_meta and (self.sender != "bot" or self.is_error):
            raise ValidationError(
                code="INVALID_MESSAGE",
                message="usage/model are only allowed on successful bot messages",
            )

    @classmethod
    def user(cls, content: str, timestamp: Optional[datetime] = None) -> "Message":
        return cls(id=str(uuid4()), content=content, sender="user", timestamp=timestamp or utcnow())

    @classmethod
    def bot(
        cls,
        content: str,
        timestamp: Optional[datetime] = None,
        usage: Optional[TokenUsage] = None,
        model: Optional[str] = None,
        system_fingerprint: Optional[str] = None,
    ) -> "Message":
        return cls(
            id=str(uuid4()),
            content=content,
            sender="bot",
            timestamp=timestamp or utcnow(),
            usage=usage,
            model=model,
            system_fingerprint=system_fingerprint,
        )

    @classmethod
    def error(cls, content: str, timestamp: Optional[datetime] = None) -> "Message":
        return cls(id=str(uuid4()), content=content, sender="bot", timestamp=timestamp or utcnow(), is_error=True)

    @classmethod
    def from_instruction(cls, instruction: RemoteInstruction) -> "Message":
        """把远端指令转换为内部 Message：assistant → bot，其余角色 → user。"""

        sender: Sender = "bot" if instruction.role == "assistant" else "user"
        return cls(id=str(uuid4()), content=instruction.content, sender=sender, timestamp=utcnow())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "sender": self.sender,
            "timestamp": format_timestamp(self.timestamp),
        }
        if self.is_error:
            data["isError"] = True
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        if self.model is not None:
            data["model"] = self.model
        if self.system_fingerprint is not None:
            data["systemFingerprint"] = self.system_fingerprint
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        usage_raw = data.get("usage")
        return cls(
            id=str(data["id"]),
            content=data.get("content") or "",
            sender=data["sender"],
            timestamp=parse_timestamp(data["timestamp"]),
            is_error=bool(data.get("isError", False)),
            usage=TokenUsage.from_dict(usage_raw) if isinstance(usage_raw, dict) else None,
            model=data.get("model"),
            system_fingerprint=data.get("systemFingerprint"),
        )


@dataclass(frozen=True)
class CompletionResult:
    """一次远端调用的归一化结果。

    成功: message 为模型回答，error 为 None。
    失败: message 为空字符串，error 为错误描述。
    """

    message: str
    error: Optional[str] = None
    usage: Optional[TokenUsage] = None
    model: Optional[str] = None
    system_fingerprint: Optional[str] = None

    def __post_init__(self) -> None:
        if self.error is not None and self.message:
            raise ValidationError(code="INVALID_RESULT", message="A failed result must not carry a message")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> "CompletionResult":
        return cls(message="", error=error)
