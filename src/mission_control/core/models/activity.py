"""TaskActivity / TaskDeliverable Domain Model"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import DeliverableType


class TaskActivity(BaseModel):
    """任务级进度记录，面向人类阅读，与审计事件分开"""

    activity_id: str
    task_id: str
    agent_id: str | None = None
    activity_type: str = Field(description="如 completed / progress / status_changed")
    message: str
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="可选 model / tokens_in / tokens_out，其余键原样保留",
    )
    created_at: datetime


class TaskDeliverable(BaseModel):
    """Agent 登记的交付物（文件、URL 或其他产物）"""

    deliverable_id: str
    task_id: str
    deliverable_type: DeliverableType
    title: str
    path: str | None = None
    description: str | None = None
    created_at: datetime
