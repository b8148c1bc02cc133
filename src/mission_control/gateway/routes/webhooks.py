"""完成回调路由

POST /api/webhooks/agent-completion: {task_id, summary} 或 {session_id, message}
GET  /api/webhooks/agent-completion: 最近的 task_completed 事件
"""

from fastapi import APIRouter, Depends
from mission_control.core.models.payloads import CompletionWebhook

from ..deps import get_services

router = APIRouter()


@router.post("/api/webhooks/agent-completion")
async def agent_completion(body: CompletionWebhook, services=Depends(get_services)):
    return await services.completion.handle(body)


@router.get("/api/webhooks/agent-completion")
async def recent_completions(services=Depends(get_services)):
    return {"status": "ok", "recent_completions": await services.completion.recent_completions()}
