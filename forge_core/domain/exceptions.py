"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在面板消息处理层做统一捕获与用户提示。

分层：
- NoProviderAvailableError / NoModelAvailableError：请求前置条件不满足，原样抛给调用方。
- ProviderTransportError 及其子类：Provider 调用失败，由 AiService 包装成 AiRequestError。
- LanguageModelError：Provider 明确返回的协议级错误，携带机器可读的 code。
- ToolInvocationError：工具调用失败，只在工具轮次循环内部被转换为工具结果，不外抛。
"""

NO_PROVIDER_MESSAGE = "No AI provider available. Install GitHub Copilot or configure a Gemini API key."


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NO_PROVIDER"）。
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


class NoProviderAvailableError(BusinessError):
    """两个 Provider 都不可用。"""

    def __init__(self, message: str = NO_PROVIDER_MESSAGE, **extra):
        super().__init__(code="NO_PROVIDER", message=message, http_status=503, **extra)


class NoModelAvailableError(BusinessError):
    """Provider 可用，但所有回退链都没有解析出模型。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="NO_MODEL", message=message, http_status=503, **extra)


class ProviderTransportError(BusinessError):
    """Provider 调用过程中的传输层错误基类。"""


class NetworkError(ProviderTransportError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(ProviderTransportError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(ProviderTransportError):
    """Provider 限流错误，重试/退避策略由调用方负责。"""


class LanguageModelError(ProviderTransportError):
    """Provider 返回的语言模型错误（NoPermissions、Blocked、NotFound 等）。"""


class ToolInvocationError(BusinessError):
    """工具不存在或执行失败。"""


class RequestCancelledError(BusinessError):
    """请求被 CancellationToken 取消。"""

    def __init__(self, message: str = "Request cancelled", **extra):
        super().__init__(code="CANCELLED", message=message, http_status=499, **extra)


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class AiRequestError(BusinessError):
    """面向调用方的请求失败错误，保留底层错误信息。"""
