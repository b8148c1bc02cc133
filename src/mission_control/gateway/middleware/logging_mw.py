"""LoggingMiddleware -- 请求级 request_id 与访问日志

上游传入 X-Request-ID 时沿用，否则生成 ULID；绑定到 structlog contextvars，
服务层日志自动带上同一个 request_id。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        log = structlog.get_logger().bind(method=request.method, path=request.url.path)
        started = time.perf_counter()
        await log.ainfo("request_started")

        try:
            response = await call_next(request)
        except Exception:
            await log.aexception(
                "request_crashed",
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise

        await log.ainfo(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
