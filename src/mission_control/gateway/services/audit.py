"""审计事件与序列化辅助"""

from datetime import UTC, datetime
from typing import Any

from mission_control.core.models import Agent, Event, EventType, Task
from ulid import ULID


def new_event(
    event_type: EventType,
    message: str,
    *,
    agent_id: str | None = None,
    task_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Event:
    """构建一条待写入的审计事件"""
    return Event(
        event_id=str(ULID()),
        type=event_type,
        agent_id=agent_id,
        task_id=task_id,
        message=message,
        metadata=metadata or {},
        created_at=datetime.now(UTC),
    )


def task_view(task: Task, agent: Agent | None = None) -> dict[str, Any]:
    """Task 的对外 JSON 表示，附带负责人名称"""
    data = task.model_dump(mode="json")
    data["assigned_agent_name"] = agent.name if agent else None
    return data


def agent_view(agent: Agent) -> dict[str, Any]:
    return agent.model_dump(mode="json")
