"""健康检查路由

GET /health: Liveness，永远 200
GET /ready:  Readiness；core 档检查 SQLite 连通性与 WAL，
             openclaw / full 档额外探测 OpenClaw Gateway
"""

import structlog
from fastapi import APIRouter, Query, Request
from mission_control.core.store import StoreGroup
from mission_control.core.store.sqlite_init import verify_wal_mode
from mission_control.openclaw import OpenClawGatewayClient
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()

GATEWAY_PROFILES = ("openclaw", "full")


async def _check_sqlite(store_group: StoreGroup) -> str:
    cursor = await store_group.conn.execute("SELECT 1")
    await cursor.fetchone()
    return "ok"


async def _check_wal(store_group: StoreGroup) -> str:
    return "ok" if await verify_wal_mode(store_group.conn) else "disabled"


async def _check_gateway(gateway: OpenClawGatewayClient) -> str:
    if await gateway.health_check():
        return "ok"
    log.warning("openclaw_gateway_unhealthy", gateway_url=gateway.gateway_url)
    return "unreachable"


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str = Query(default="core", description="core / openclaw / full"),
):
    """WAL 未启用只报告 disabled，不判定为未就绪"""
    store_group = request.app.state.store_group
    checks: dict[str, str] = {}
    healthy = True

    for name, probe in (("sqlite", _check_sqlite), ("wal_mode", _check_wal)):
        try:
            checks[name] = await probe(store_group)
        except Exception as e:
            checks[name] = f"error: {e}"
            healthy = False

    if profile in GATEWAY_PROFILES:
        checks["openclaw_gateway"] = await _check_gateway(request.app.state.gateway)
        healthy = healthy and checks["openclaw_gateway"] == "ok"
    else:
        checks["openclaw_gateway"] = "skipped"

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ready" if healthy else "not_ready",
            "profile": profile,
            "checks": checks,
        },
    )
