"""AppService -- 本地项目登记与 PRD 进度统计

进度来自项目中第一个存在的 PRD 文件（.ralphy/PRD.md、PRD.md、docs/PRD.md），
统计 "- [x]" 与 "- [ ]" 勾选项。
"""

import asyncio
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from mission_control.core.errors import InvalidRequestError, NotFoundError
from mission_control.core.models import App
from mission_control.core.models.payloads import AppCreate
from mission_control.core.store import StoreGroup, transaction
from ulid import ULID

log = structlog.get_logger()

PRD_CANDIDATES = (".ralphy/PRD.md", "PRD.md", "docs/PRD.md")

_DONE_ITEM = re.compile(r"^\s*- \[x\]", re.IGNORECASE | re.MULTILINE)
_OPEN_ITEM = re.compile(r"^\s*- \[ \]", re.MULTILINE)


def count_checklist(text: str) -> tuple[int, int]:
    """返回 (已完成, 总数)"""
    done = len(_DONE_ITEM.findall(text))
    pending = len(_OPEN_ITEM.findall(text))
    return done, done + pending


def find_prd(app_path: str) -> Path | None:
    root = Path(app_path).expanduser()
    for candidate in PRD_CANDIDATES:
        path = root / candidate
        if path.is_file():
            return path
    return None


class AppService:
    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def create_app(self, payload: AppCreate) -> App:
        if not payload.name or not payload.path:
            raise InvalidRequestError("Name and path are required")
        now = datetime.now(UTC)
        app = App(
            app_id=str(ULID()),
            name=payload.name,
            description=payload.description,
            path=payload.path,
            port=payload.port,
            workspace_id=payload.workspace_id or "default",
            created_at=now,
            updated_at=now,
        )
        async with transaction(self._stores.conn):
            await self._stores.app_store.create_app(app)
        return app

    async def get_app(self, app_id: str) -> App:
        app = await self._stores.app_store.get_app(app_id)
        if app is None:
            raise NotFoundError(f"App {app_id} not found", code="APP_NOT_FOUND")
        return app

    async def list_apps(self, workspace_id: str | None = None) -> list[App]:
        return await self._stores.app_store.list_apps(workspace_id)

    async def refresh_progress(self, app_id: str) -> dict[str, Any]:
        """重新统计 App 进度并持久化"""
        app = await self.get_app(app_id)
        prd_path = await asyncio.to_thread(find_prd, app.path)
        if prd_path is None:
            return {
                "app_id": app_id,
                "completed": app.progress_completed,
                "total": app.progress_total,
                "source": "no_prd",
            }

        text = await asyncio.to_thread(prd_path.read_text, encoding="utf-8")
        completed, total = count_checklist(text)
        async with transaction(self._stores.conn):
            await self._stores.app_store.update_progress(app_id, completed, total)
        log.info("app_progress_refreshed", app_id=app_id, completed=completed, total=total)
        return {
            "app_id": app_id,
            "completed": completed,
            "total": total,
            "source": "prd",
            "prd_path": str(prd_path),
        }
