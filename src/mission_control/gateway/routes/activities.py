"""任务活动与交付物路由

POST/GET /api/tasks/{task_id}/activities
POST/GET /api/tasks/{task_id}/deliverables
"""

from fastapi import APIRouter, Depends
from mission_control.core.models.payloads import ActivityCreate, DeliverableCreate

from ..deps import get_services

router = APIRouter()


@router.get("/api/tasks/{task_id}/activities")
async def list_activities(task_id: str, services=Depends(get_services)):
    """最新在前"""
    activities = await services.activities.list_activities(task_id)
    return [a.model_dump(mode="json") for a in activities]


@router.post("/api/tasks/{task_id}/activities", status_code=201)
async def log_activity(task_id: str, body: ActivityCreate, services=Depends(get_services)):
    activity = await services.activities.log_activity(task_id, body)
    return activity.model_dump(mode="json")


@router.get("/api/tasks/{task_id}/deliverables")
async def list_deliverables(task_id: str, services=Depends(get_services)):
    deliverables = await services.activities.list_deliverables(task_id)
    return [d.model_dump(mode="json") for d in deliverables]


@router.post("/api/tasks/{task_id}/deliverables", status_code=201)
async def add_deliverable(task_id: str, body: DeliverableCreate, services=Depends(get_services)):
    """文件路径不存在时仍返回 201，附带 warning 字段"""
    return await services.activities.add_deliverable(task_id, body)
