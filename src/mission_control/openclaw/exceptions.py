"""OpenClaw 客户端异常体系

连接类失败（不可达、超时）与协议类失败（对端拒绝、帧格式错误）分开，
上层据此分别映射为 503（可重试）与 502。
"""


class OpenClawError(Exception):
    """OpenClaw 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class GatewayUnreachableError(OpenClawError):
    """OpenClaw Gateway 不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, gateway_url: str, original_error: Exception) -> None:
        super().__init__(
            f"OpenClaw Gateway unreachable: {gateway_url} -- {original_error}",
            recoverable=True,
        )
        self.gateway_url = gateway_url
        self.original_error = original_error


class GatewayProtocolError(OpenClawError):
    """Gateway 拒绝请求（ok=false）或响应帧无法解析"""

    def __init__(self, method: str, message: str, code: str | None = None) -> None:
        super().__init__(f"OpenClaw {method} failed: {message}", recoverable=False)
        self.method = method
        self.code = code


class LimitsUnavailableError(OpenClawError):
    """额度服务非 2xx、超时或返回无法解析的数据"""

    def __init__(self, limits_url: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"Agent-limits service unavailable: {reason}", recoverable=True)
        self.limits_url = limits_url
        self.reason = reason
        self.status_code = status_code
