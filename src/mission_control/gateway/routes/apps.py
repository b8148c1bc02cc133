"""App 路由

GET/POST /api/apps
GET      /api/apps/{app_id}
POST     /api/apps/{app_id}/progress: 从 PRD 勾选项重新统计进度
"""

from fastapi import APIRouter, Depends, Query
from mission_control.core.models.payloads import AppCreate

from ..deps import get_services

router = APIRouter()


@router.get("/api/apps")
async def list_apps(
    workspace_id: str | None = Query(default=None),
    services=Depends(get_services),
):
    apps = await services.apps.list_apps(workspace_id)
    return [a.model_dump(mode="json") for a in apps]


@router.post("/api/apps", status_code=201)
async def create_app(body: AppCreate, services=Depends(get_services)):
    app = await services.apps.create_app(body)
    return app.model_dump(mode="json")


@router.get("/api/apps/{app_id}")
async def get_app(app_id: str, services=Depends(get_services)):
    app = await services.apps.get_app(app_id)
    return app.model_dump(mode="json")


@router.post("/api/apps/{app_id}/progress")
async def refresh_progress(app_id: str, services=Depends(get_services)):
    return await services.apps.refresh_progress(app_id)
