"""TraceMiddleware -- 为任务/Agent 相关请求绑定 trace_id

从 /api/tasks/{task_id}/... 或 /api/agents/{agent_id}/... 中提取 ULID。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID 字符串长度
_ULID_LENGTH = 26

_TRACED_COLLECTIONS = {"tasks": "task", "agents": "agent"}


def extract_trace_id(path: str) -> str | None:
    parts = path.split("/")
    for i, part in enumerate(parts[:-1]):
        kind = _TRACED_COLLECTIONS.get(part)
        if kind and len(parts[i + 1]) == _ULID_LENGTH:
            return f"trace-{kind}-{parts[i + 1]}"
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """资源级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = extract_trace_id(request.url.path)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)
        return await call_next(request)
