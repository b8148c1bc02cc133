"""Task Domain Model

tasks 表的一行。Planning 子记录（session key / transcript / spec / agents）
内联在 Task 上，version 用于乐观并发控制。
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import Priority, TaskStatus


class PlanningMessage(BaseModel):
    """Planning 对话记录中的一条消息"""

    role: str = Field(description="user / assistant")
    content: str = Field(description="消息正文")
    timestamp: datetime = Field(description="写入时间")


class Task(BaseModel):
    """Task 数据模型"""

    task_id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(description="任务标题")
    description: str | None = Field(default=None, description="描述，审批后替换为锁定的规格文档")
    status: TaskStatus = Field(default=TaskStatus.INBOX, description="当前状态")
    priority: Priority = Field(default=Priority.NORMAL, description="优先级")
    assigned_agent_id: str | None = Field(default=None, description="负责的 Agent")
    created_by_agent_id: str | None = Field(default=None, description="创建者 Agent")
    workspace_id: str = Field(default="default", description="所属工作区")
    app_id: str | None = Field(default=None, description="关联 App")
    due_date: str | None = Field(default=None, description="截止日期")

    planning_session_key: str | None = Field(
        default=None,
        description="Planning 会话 key，只设置一次",
    )
    planning_messages: list[PlanningMessage] = Field(default_factory=list)
    planning_complete: bool = Field(default=False)
    planning_spec: dict[str, Any] | None = Field(default=None)
    planning_agents: list[dict[str, Any]] | None = Field(default=None)

    version: int = Field(default=1, description="写入版本号，每次更新 +1")
    created_at: datetime
    updated_at: datetime
