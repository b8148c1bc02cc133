"""派发路由

POST /api/tasks/{task_id}/dispatch: 把任务简报投递到负责 Agent 的运行时会话。
- 400: 未分配 / Agent 未关联运行时
- 404: 任务或 Agent 不存在
- 502: 运行时拒绝
- 503: 运行时不可达（可重试）
"""

from fastapi import APIRouter, Depends

from ..deps import get_services

router = APIRouter()


@router.post("/api/tasks/{task_id}/dispatch")
async def dispatch_task(task_id: str, services=Depends(get_services)):
    return await services.dispatcher.dispatch(task_id)
