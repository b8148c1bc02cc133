"""AgentSnapshot Domain Model -- 每次额度轮询时的 Agent 状态快照"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import AgentStatus


class AgentSnapshot(BaseModel):
    snapshot_id: str
    snapshot_time: datetime = Field(description="所属轮询时间，同一轮的快照取值相同")
    agent_id: str
    agent_name: str
    status: AgentStatus
    avatar_emoji: str | None = None
    model: str = "unknown"
    limit_5h: int = 100
    limit_week: int = 100
    task_id: str | None = Field(default=None, description="快照时正在处理的任务")
    task_title: str | None = None
