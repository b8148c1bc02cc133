"""集成测试共享 fixture -- 走完整 lifespan（echo 模式的 OpenClaw）"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path, monkeypatch):
    """集成测试用 FastAPI app，lifespan 负责 DB 与服务装配"""
    monkeypatch.setenv("MC_DB_PATH", str(tmp_path / "sqlite" / "test.db"))
    monkeypatch.setenv("MC_OPENCLAW_MODE", "echo")
    monkeypatch.setenv("MC_BASE_URL", "http://mc.test")
    monkeypatch.setenv("MC_PLANNING_POLL_ATTEMPTS", "5")
    monkeypatch.setenv("MC_PLANNING_POLL_INTERVAL_MS", "10")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from mission_control.gateway.main import create_app

    app = create_app()
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
