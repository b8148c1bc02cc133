"""领域异常体系

每个异常携带稳定的 code 与 HTTP 状态码，由 gateway 的异常处理器统一渲染为
{"error": {"code", "message", "retryable"}}。
"""


class MissionControlError(Exception):
    """领域异常基类"""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.retryable = retryable


class NotFoundError(MissionControlError):
    """Task / Agent / Session 等实体不存在"""

    status_code = 404
    default_code = "NOT_FOUND"


class ForbiddenError(MissionControlError):
    """非 master Agent 尝试 review -> done"""

    status_code = 403
    default_code = "FORBIDDEN"


class InvalidRequestError(MissionControlError):
    """缺少必填字段、Planning 已开始、存在未回答问题等"""

    status_code = 400
    default_code = "INVALID_REQUEST"


class ConflictError(MissionControlError):
    """重复的活跃 Session，或 Task 版本冲突"""

    status_code = 409
    default_code = "CONFLICT"


class UpstreamUnavailableError(MissionControlError):
    """外部运行时或额度服务不可达/超时"""

    status_code = 503
    default_code = "UPSTREAM_UNAVAILABLE"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        retryable: bool = True,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, code=code, retryable=retryable)
        if status_code is not None:
            self.status_code = status_code


class UpstreamProtocolError(MissionControlError):
    """外部运行时拒绝请求或返回无法解析的响应"""

    status_code = 502
    default_code = "UPSTREAM_PROTOCOL_ERROR"


class TaskVersionConflictError(ConflictError):
    """Task 写入时 version 校验失败（乐观并发）"""

    default_code = "TASK_VERSION_CONFLICT"

    def __init__(self, task_id: str, expected_version: int) -> None:
        super().__init__(
            f"Task {task_id} was modified concurrently (expected version {expected_version})",
            retryable=True,
        )
        self.task_id = task_id
        self.expected_version = expected_version
