"""审计事件路由

GET  /api/events: 事件流，最新在前
POST /api/events: 写入一条事件
"""

from fastapi import APIRouter, Depends, Query
from mission_control.core.models.payloads import EventCreate

from ..deps import get_services

router = APIRouter()


@router.get("/api/events")
async def list_events(
    limit: int = Query(default=50, ge=1, le=500),
    since: str | None = Query(default=None, description="ISO 时间，只返回之后的事件"),
    task_id: str | None = Query(default=None),
    agent_id: str | None = Query(default=None),
    event_type: str | None = Query(default=None, alias="type"),
    services=Depends(get_services),
):
    events = await services.activities.list_events(
        limit=limit,
        since=since,
        task_id=task_id,
        agent_id=agent_id,
        event_type=event_type,
    )
    return [e.model_dump(mode="json") for e in events]


@router.post("/api/events", status_code=201)
async def log_event(body: EventCreate, services=Depends(get_services)):
    event = await services.activities.log_event(body)
    return event.model_dump(mode="json")
