"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭、OpenClaw 客户端、服务装配、路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from mission_control.core.config import get_db_path
from mission_control.core.errors import MissionControlError
from mission_control.core.store import create_store_group
from mission_control.openclaw import (
    EchoGatewayClient,
    LimitsClient,
    OpenClawGatewayClient,
    load_openclaw_config,
)
from starlette.responses import JSONResponse

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import (
    activities,
    agents,
    apps,
    dispatch,
    events,
    health,
    planning,
    stream,
    subagents,
    tasks,
    webhooks,
)
from .services.background import BackgroundRunner
from .services.container import build_services
from .services.notifier import Notifier

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """启动时初始化 DB、客户端与服务，关闭时取消后台任务并关闭连接"""
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group
    app.state.notifier = Notifier()
    app.state.runner = BackgroundRunner()

    openclaw_config = load_openclaw_config()
    app.state.openclaw_config = openclaw_config
    if openclaw_config.mode == "echo":
        gateway = EchoGatewayClient(auto_echo=True)
    else:
        gateway = OpenClawGatewayClient(
            gateway_url=openclaw_config.gateway_url,
            token=openclaw_config.gateway_token.get_secret_value(),
            timeout_s=openclaw_config.timeout_s,
        )
    app.state.gateway = gateway
    limits_client = LimitsClient(
        limits_url=openclaw_config.limits_url,
        timeout_s=openclaw_config.limits_timeout_s,
    )

    app.state.services = build_services(
        store_group,
        app.state.notifier,
        app.state.runner,
        gateway,
        limits_client,
    )
    log.info(
        "mission_control_started",
        openclaw_mode=openclaw_config.mode,
        gateway_url=gateway.gateway_url,
        limits_url=limits_client.limits_url,
    )

    yield

    await app.state.runner.shutdown()
    await store_group.conn.close()


async def handle_mission_control_error(request: Request, exc: MissionControlError) -> JSONResponse:
    """领域异常统一渲染为 {"error": {code, message, retryable}}"""
    if exc.status_code >= 500:
        log.warning("request_failed_upstream", code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "retryable": exc.retryable,
            }
        },
    )


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Mission Control",
        version="0.1.0",
        description="多 Agent 任务编排网关",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_exception_handler(MissionControlError, handle_mission_control_error)

    setup_logging()
    setup_logfire(app)

    # /agents/limits 需先于 /agents/{agent_id} 注册
    app.include_router(agents.limits_router, tags=["agents"])
    app.include_router(agents.router, tags=["agents"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(dispatch.router, tags=["dispatch"])
    app.include_router(planning.router, tags=["planning"])
    app.include_router(activities.router, tags=["activities"])
    app.include_router(subagents.router, tags=["subagents"])
    app.include_router(webhooks.router, tags=["webhooks"])
    app.include_router(apps.router, tags=["apps"])
    app.include_router(events.router, tags=["events"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
