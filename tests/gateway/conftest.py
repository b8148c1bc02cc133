"""Gateway 测试配置

不走 lifespan：直接构造 app 并手动装配 app.state，
OpenClaw 使用 EchoGatewayClient，额度服务使用 httpx.MockTransport。
"""

from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mission_control.core.store import StoreGroup
from mission_control.openclaw import EchoGatewayClient, LimitsClient


class LimitsStub:
    """可控的额度服务：reports 为返回数据，fail=True 时返回 503"""

    def __init__(self) -> None:
        self.reports: list[dict[str, Any]] = []
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(503, text="limits down")
        return httpx.Response(200, json=self.reports)


@pytest.fixture
def gateway() -> EchoGatewayClient:
    return EchoGatewayClient()


@pytest.fixture
def limits_stub() -> LimitsStub:
    return LimitsStub()


@pytest.fixture
def wire_services(store_group: StoreGroup, limits_stub: LimitsStub):
    """按给定 gateway 重新装配 app.state.services"""
    from mission_control.gateway.services.container import build_services

    def _wire(app, gateway) -> None:
        app.state.gateway = gateway
        app.state.services = build_services(
            store_group,
            app.state.notifier,
            app.state.runner,
            gateway,
            LimitsClient(
                limits_url="http://limits.test/api/agents",
                transport=httpx.MockTransport(limits_stub.handler),
            ),
            planning_poll_attempts=5,
            planning_poll_interval_s=0.01,
        )

    return _wire


@pytest_asyncio.fixture
async def app(monkeypatch, store_group: StoreGroup, gateway, wire_services):
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    monkeypatch.setenv("MC_BASE_URL", "http://mc.test")

    from mission_control.gateway.main import create_app
    from mission_control.gateway.services.background import BackgroundRunner
    from mission_control.gateway.services.notifier import Notifier

    application = create_app()
    application.state.store_group = store_group
    application.state.notifier = Notifier()
    application.state.runner = BackgroundRunner()
    wire_services(application, gateway)

    yield application

    await application.state.runner.shutdown()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def create_agent(client: AsyncClient):
    """通过 API 创建 Agent，返回 JSON"""

    async def _create(**overrides) -> dict[str, Any]:
        body = {"name": "Builder", "role": "Developer", "openclaw_agent_id": "builder"}
        body.update(overrides)
        resp = await client.post("/api/agents", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def create_task(client: AsyncClient):
    """通过 API 创建 Task，返回 JSON"""

    async def _create(**overrides) -> dict[str, Any]:
        body = {"title": "Build landing page"}
        body.update(overrides)
        resp = await client.post("/api/tasks", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create
