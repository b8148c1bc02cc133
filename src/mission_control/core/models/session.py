"""Session-Correlation Domain Model

把内部 Agent（可选 Task）绑定到外部运行时的 session。
同一 Agent 至多一条 active 的 persistent 记录。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import SessionStatus, SessionType


class SessionCorrelation(BaseModel):
    session_id: str = Field(description="内部 ID，ULID 格式")
    agent_id: str
    task_id: str | None = None
    openclaw_session_id: str = Field(description="外部运行时中的 session 名")
    channel: str = "mission-control"
    status: SessionStatus = SessionStatus.ACTIVE
    session_type: SessionType = SessionType.PERSISTENT
    created_at: datetime
    ended_at: datetime | None = None
