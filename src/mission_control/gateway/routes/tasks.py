"""任务路由

GET    /api/tasks: 任务列表，支持 status（逗号分隔）/ workspace_id / assigned_agent_id / app_id 筛选
POST   /api/tasks: 创建任务
GET    /api/tasks/{task_id}: 任务详情
PATCH  /api/tasks/{task_id}: 部分更新，触发状态机副作用
DELETE /api/tasks/{task_id}: 删除任务及其关联记录
"""

from fastapi import APIRouter, Depends, Query
from mission_control.core.models.payloads import TaskCreate, TaskUpdate

from ..deps import get_services

router = APIRouter()


@router.get("/api/tasks")
async def list_tasks(
    status: str | None = Query(default=None, description="按状态筛选，如 inbox,assigned"),
    workspace_id: str | None = Query(default=None),
    assigned_agent_id: str | None = Query(default=None),
    app_id: str | None = Query(default=None),
    services=Depends(get_services),
):
    """查询任务列表，按 created_at 倒序"""
    tasks = await services.tasks.list_tasks(
        status=status,
        workspace_id=workspace_id,
        assigned_agent_id=assigned_agent_id,
        app_id=app_id,
    )
    return await services.tasks.views(tasks)


@router.post("/api/tasks", status_code=201)
async def create_task(body: TaskCreate, services=Depends(get_services)):
    task = await services.tasks.create_task(body)
    return await services.tasks.view(task)


@router.get("/api/tasks/{task_id}")
async def get_task(task_id: str, services=Depends(get_services)):
    task = await services.tasks.get_task(task_id)
    return await services.tasks.view(task)


@router.patch("/api/tasks/{task_id}")
async def update_task(task_id: str, body: TaskUpdate, services=Depends(get_services)):
    """只修改请求体中出现的字段；携带 version 时做版本校验"""
    task = await services.tasks.update_task(task_id, body)
    return await services.tasks.view(task)


@router.delete("/api/tasks/{task_id}")
async def delete_task(task_id: str, services=Depends(get_services)):
    await services.tasks.delete_task(task_id)
    return {"success": True}
