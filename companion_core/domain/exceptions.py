"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或壳层（托盘/窗口）做统一捕获与用户提示。

注意：深度分析冷却中（CooldownActive）不是错误，而是正常状态，
通过 DeepAnalysisResult.on_cooldown 返回，不在这里定义异常。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
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


class StorageError(BusinessError):
    """持久化读写失败（消息日志、冷却时间戳、提示词文件）。"""


class AuthError(BusinessError):
    """未配置 API 凭证，在发起任何网络请求之前直接失败。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(NetworkError):
    """补全服务返回非 2xx 状态时抛出，message 为响应体原文。"""


class RateLimitError(ApiError):
    """Provider 限流（429），不做自动重试。"""


class ParseError(BusinessError):
    """2xx 响应体无法解析为 JSON。"""
