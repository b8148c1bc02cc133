"""Event Domain Model

审计事件 append-only，仅在 Task / Agent 级联删除时移除。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventType


class Event(BaseModel):
    event_id: str = Field(description="唯一标识，ULID 格式，时间有序")
    type: EventType = Field(description="事件类型")
    agent_id: str | None = Field(default=None, description="关联 Agent")
    task_id: str | None = Field(default=None, description="关联 Task")
    message: str = Field(description="人类可读描述")
    metadata: dict[str, Any] = Field(default_factory=dict, description="结构化附加信息")
    created_at: datetime
