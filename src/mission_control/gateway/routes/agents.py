"""Agent 路由

额度与快照（limits_router，需先于 /api/agents/{agent_id} 注册）:
    GET  /api/agents/limits: 本地保存的额度数据
    POST /api/agents/limits: 拉取额度服务并执行耗尽清扫
    GET  /api/agents/snapshots: 最近 hours 小时的 Agent 状态快照，按轮询时间分组
Agent:
    GET/POST /api/agents
    GET/PATCH/DELETE /api/agents/{agent_id}
运行时关联:
    GET/POST/DELETE /api/agents/{agent_id}/openclaw
"""

from fastapi import APIRouter, Depends, Query
from mission_control.core.models.payloads import AgentCreate, AgentUpdate

from ..deps import get_services

limits_router = APIRouter()
router = APIRouter()


@limits_router.get("/api/agents/limits")
async def list_limits(services=Depends(get_services)):
    return await services.capacity.list_limits()


@limits_router.post("/api/agents/limits")
async def poll_limits(services=Depends(get_services)):
    """执行一轮额度轮询；额度服务不可用时返回 502 且不修改任何 Agent"""
    return await services.capacity.poll()


@limits_router.get("/api/agents/snapshots")
async def list_snapshots(
    hours: int = Query(default=24, description="回看小时数，限制在 1-168"),
    services=Depends(get_services),
):
    return await services.capacity.list_snapshots(hours)


@router.get("/api/agents")
async def list_agents(
    workspace_id: str | None = Query(default=None),
    services=Depends(get_services),
):
    agents = await services.agents.list_agents(workspace_id)
    return [a.model_dump(mode="json") for a in agents]


@router.post("/api/agents", status_code=201)
async def create_agent(body: AgentCreate, services=Depends(get_services)):
    agent = await services.agents.create_agent(body)
    return agent.model_dump(mode="json")


@router.get("/api/agents/{agent_id}")
async def get_agent(agent_id: str, services=Depends(get_services)):
    agent = await services.agents.get_agent(agent_id)
    return agent.model_dump(mode="json")


@router.patch("/api/agents/{agent_id}")
async def update_agent(agent_id: str, body: AgentUpdate, services=Depends(get_services)):
    agent = await services.agents.update_agent(agent_id, body)
    return agent.model_dump(mode="json")


@router.delete("/api/agents/{agent_id}")
async def delete_agent(agent_id: str, services=Depends(get_services)):
    await services.agents.delete_agent(agent_id)
    return {"success": True}


@router.get("/api/agents/{agent_id}/openclaw")
async def get_openclaw_link(agent_id: str, services=Depends(get_services)):
    agent = await services.agents.get_agent(agent_id)
    session = await services.correlator.get_active(agent.agent_id)
    return {
        "linked": session is not None,
        "session": session.model_dump(mode="json") if session else None,
    }


@router.post("/api/agents/{agent_id}/openclaw", status_code=201)
async def link_openclaw(agent_id: str, services=Depends(get_services)):
    """409: 已有 active 会话；503: 运行时不可达"""
    agent = await services.agents.get_agent(agent_id)
    session = await services.correlator.link(agent)
    return {"linked": True, "session": session.model_dump(mode="json")}


@router.delete("/api/agents/{agent_id}/openclaw")
async def unlink_openclaw(agent_id: str, services=Depends(get_services)):
    agent = await services.agents.get_agent(agent_id)
    session = await services.correlator.unlink(agent)
    return {"linked": False, "session": session.model_dump(mode="json")}
