"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 Provider 边界或持久化边界做统一捕获与日志记录。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、响应无法解析等。"""


class ApiError(BusinessError):
    """Completion 端点返回非 2xx 状态时抛出。"""


class RateLimitError(ApiError):
    """端点返回 429。客户端不重试，只把描述透传给上层。"""


class ValidationError(BusinessError):
    """参数、配置或领域不变量校验失败。"""


class StoreError(BusinessError):
    """本地键值存储读写失败。"""
