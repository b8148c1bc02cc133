"""子 Agent 路由

GET  /api/tasks/{task_id}/subagent: 任务下登记的子 Agent 会话
POST /api/tasks/{task_id}/subagent: 登记子 Agent 会话，名称未知时创建 Sub-Agent
"""

from fastapi import APIRouter, Depends
from mission_control.core.errors import InvalidRequestError
from mission_control.core.models.payloads import SubagentRegister

from ..deps import get_services

router = APIRouter()


@router.get("/api/tasks/{task_id}/subagent")
async def list_subagents(task_id: str, services=Depends(get_services)):
    await services.tasks.get_task(task_id)
    sessions = await services.correlator.list_subagents(task_id)
    return [s.model_dump(mode="json") for s in sessions]


@router.post("/api/tasks/{task_id}/subagent", status_code=201)
async def register_subagent(
    task_id: str,
    body: SubagentRegister,
    services=Depends(get_services),
):
    if not body.openclaw_session_id or not body.agent_name:
        raise InvalidRequestError(
            "openclaw_session_id and agent_name are required",
            code="SUBAGENT_FIELDS_REQUIRED",
        )
    task = await services.tasks.get_task(task_id)
    session, agent = await services.correlator.register_subagent(
        task, body.openclaw_session_id, body.agent_name
    )
    return {
        "session": session.model_dump(mode="json"),
        "agent": agent.model_dump(mode="json"),
    }
