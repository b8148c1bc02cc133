"""请求 Payload 模型

必填字段在模型层保持可选，由服务层校验并抛出 InvalidRequestError（400），
与 "缺少必填字段" 的领域错误保持一致；类型错误仍由 FastAPI 返回 422。
"""

from typing import Any

from pydantic import BaseModel, Field

from .enums import AgentStatus, DeliverableType, EventType, Priority, TaskStatus


class TaskCreate(BaseModel):
    title: str | None = Field(default=None, description="任务标题（必填）")
    description: str | None = None
    status: TaskStatus | None = Field(default=None, description="初始状态，默认 inbox")
    priority: Priority | None = Field(default=None, description="默认 normal")
    assigned_agent_id: str | None = None
    created_by_agent_id: str | None = None
    workspace_id: str | None = None
    app_id: str | None = None
    due_date: str | None = None


class TaskUpdate(BaseModel):
    """PATCH /tasks/{id}

    通过 model_fields_set 区分 "未提供" 与 "显式置空"（如 assigned_agent_id=null 表示取消分配）。
    """

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    assigned_agent_id: str | None = None
    due_date: str | None = None
    app_id: str | None = None
    updated_by_agent_id: str | None = Field(
        default=None,
        description="执行变更的 Agent；为空表示人工操作",
    )
    version: int | None = Field(
        default=None,
        description="客户端持有的版本号；提供时不一致直接返回 409",
    )


class AgentCreate(BaseModel):
    name: str | None = None
    role: str | None = None
    description: str | None = None
    avatar_emoji: str | None = None
    is_master: bool = False
    workspace_id: str | None = None
    soul_md: str | None = None
    openclaw_agent_id: str | None = None
    model: str | None = None


class AgentUpdate(BaseModel):
    name: str | None = None
    role: str | None = None
    description: str | None = None
    avatar_emoji: str | None = None
    status: AgentStatus | None = None
    is_master: bool | None = None
    soul_md: str | None = None
    openclaw_agent_id: str | None = None
    model: str | None = None


class ActivityCreate(BaseModel):
    activity_type: str | None = None
    message: str | None = None
    agent_id: str | None = None
    metadata: dict[str, Any] | None = None


class DeliverableCreate(BaseModel):
    deliverable_type: DeliverableType | None = None
    title: str | None = None
    path: str | None = None
    description: str | None = None


class PlanningAnswer(BaseModel):
    answer: str | None = Field(default=None, description="选项 id，'other' 表示自由文本")
    other_text: str | None = Field(default=None, description="answer='other' 时的自由文本")


class QuestionAnswer(BaseModel):
    answer: str | None = None


class ApprovePlanning(BaseModel):
    locked_by: str | None = Field(default=None, description="审批人")


class CompletionWebhook(BaseModel):
    """完成回调：{task_id, summary} 或 {session_id, message} 二选一"""

    task_id: str | None = None
    summary: str | None = None
    session_id: str | None = None
    message: str | None = None


class SubagentRegister(BaseModel):
    openclaw_session_id: str | None = None
    agent_name: str | None = None


class AppCreate(BaseModel):
    name: str | None = None
    path: str | None = None
    description: str | None = None
    port: int | None = None
    workspace_id: str | None = None


class EventCreate(BaseModel):
    type: EventType
    message: str | None = None
    agent_id: str | None = None
    task_id: str | None = None
    metadata: dict[str, Any] | None = None
