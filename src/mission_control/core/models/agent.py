"""Agent Domain Model"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import AgentStatus


class Agent(BaseModel):
    """Agent 数据模型

    openclaw_agent_id 是外部运行时中的关联 ID，与内部 agent_id 不同。
    limit_5h / limit_week 为剩余额度百分比（0-100）。
    """

    agent_id: str = Field(description="唯一标识，ULID 格式")
    name: str
    role: str
    description: str | None = None
    avatar_emoji: str = "🤖"
    status: AgentStatus = AgentStatus.STANDBY
    is_master: bool = False
    workspace_id: str = "default"
    soul_md: str | None = Field(default=None, description="人格简介")
    openclaw_agent_id: str | None = None
    model: str = "unknown"
    provider_account_id: str | None = None
    limit_5h: int | None = 100
    limit_week: int | None = 100
    last_poll_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
