"""OpenAI Chat Completions 适配器。

本模块负责：

1. 接收 RemoteInstruction 序列。
2. 转换为 /chat/completions 的请求体 {model, messages}。
3. 调用 HTTP 接口，把网络错误、端点错误、配置缺失统一包装为业务异常。
4. 在 complete() 边界把异常归一化为 CompletionResult，成功时抽取回答、
   usage、model 与 system_fingerprint。

单次往返，不重试，不流式。
"""

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from chat_core.domain.exceptions import ApiError, BusinessError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import CompletionResult, RemoteInstruction, TokenUsage
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.registry import OPENAI_CONFIG, ProviderConfig


MIN_API_KEY_LENGTH = 10
NETWORK_ERROR_TEXT = "Network error: unable to reach the completion endpoint"
MALFORMED_RESPONSE_TEXT = "Malformed response from the completion endpoint"


class OpenAIChatClient:
    """OpenAI 兼容端点的 Completion 客户端。"""

    def __init__(self, settings, config: ProviderConfig = OPENAI_CONFIG):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings
        self._config = config
        self.name = config.name

    def complete(self, instructions: Sequence[RemoteInstruction], model_name: Optional[str] = None) -> CompletionResult:
        """执行一次调用，任何失败都返回 error 结果而不是抛出。"""

        model = self._config.resolve_model(model_name or getattr(self._settings, "model_name", None))
        try:
            data = self._post(instructions, model)
            return self._parse_response(data)
        except BusinessError as e:
            self._log(logging.WARNING, "Completion failed", code=e.code, status=e.http_status, error=e.message)
            return CompletionResult.failure(e.message)
        except Exception as e:
            logger.exception("Unexpected completion failure", extra={"extra": {"provider": self.name}})
            return CompletionResult.failure(str(e) or type(e).__name__)

    def _post(self, instructions: Sequence[RemoteInstruction], model: str) -> Dict[str, Any]:
        api_key = getattr(self._settings, "openai_api_key", None)
        if not api_key:
            # 配置缺失不发起网络请求
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        if len(api_key.strip()) < MIN_API_KEY_LENGTH:
            raise ValidationError(code="INVALID_API_KEY", message="OPENAI_API_KEY seems too short")
        payload = self._build_payload(instructions, model)
        base = getattr(self._settings, "openai_base_url", None) or self._config.base_url
        self._log(logging.INFO, "Calling completion endpoint", model=model, message_count=len(payload["messages"]))
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=NETWORK_ERROR_TEXT, detail=str(e))

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not 200 <= resp.status_code < 300:
            message = self._error_message(data) or f"API Error: {resp.status_code} - {resp.reason_phrase}"
            if resp.status_code == 429:
                raise RateLimitError(code="RATE_LIMIT", message=message, http_status=429)
            raise ApiError(code="API_ERROR", message=message, http_status=resp.status_code)
        if not isinstance(data, dict):
            raise NetworkError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE_TEXT)
        return data

    @staticmethod
    def _build_payload(instructions: Sequence[RemoteInstruction], model: str) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [i.to_payload() for i in instructions],
        }

    @staticmethod
    def _error_message(data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return None

    def _parse_response(self, data: Dict[str, Any]) -> CompletionResult:
        """抽取第一条回答与 usage 等元数据。"""

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise NetworkError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE_TEXT)
        first = choices[0] if isinstance(choices[0], dict) else {}
        msg = first.get("message")
        if not isinstance(msg, dict):
            raise NetworkError(code="MALFORMED_RESPONSE", message=MALFORMED_RESPONSE_TEXT)
        usage_raw = data.get("usage")
        usage = TokenUsage.from_api(usage_raw) if isinstance(usage_raw, dict) else None
        if usage:
            self._log(logging.INFO, "Token usage", total_tokens=usage.total_tokens)
        return CompletionResult(
            message=msg.get("content") or "",
            usage=usage,
            model=data.get("model"),
            system_fingerprint=data.get("system_fingerprint"),
        )

    def _log(self, level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = {"provider": self.name}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
