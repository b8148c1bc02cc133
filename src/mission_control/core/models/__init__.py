"""Mission Control Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .activity import TaskActivity, TaskDeliverable
from .agent import Agent
from .app import App
from .enums import (
    ACTIVE_WORK_STATES,
    COMPLETABLE_STATES,
    DEPLETION_DEMOTED_STATES,
    DEPLETION_PROTECTED_STATES,
    POST_COMPLETION_STATES,
    PRIORITY_INDICATORS,
    REVIEW_STATES,
    AgentStatus,
    DeliverableType,
    EventType,
    LimitStatus,
    NotificationType,
    PlanningCategory,
    Priority,
    QuestionType,
    SessionStatus,
    SessionType,
    TaskStatus,
)
from .event import Event
from .planning import PlanningQuestion, PlanningSpec
from .session import SessionCorrelation
from .snapshot import AgentSnapshot
from .task import PlanningMessage, Task

__all__ = [
    # 枚举
    "TaskStatus",
    "Priority",
    "AgentStatus",
    "SessionStatus",
    "SessionType",
    "EventType",
    "LimitStatus",
    "PlanningCategory",
    "QuestionType",
    "DeliverableType",
    "NotificationType",
    # 状态集合
    "ACTIVE_WORK_STATES",
    "COMPLETABLE_STATES",
    "DEPLETION_DEMOTED_STATES",
    "DEPLETION_PROTECTED_STATES",
    "POST_COMPLETION_STATES",
    "PRIORITY_INDICATORS",
    "REVIEW_STATES",
    # 实体
    "Task",
    "PlanningMessage",
    "Agent",
    "SessionCorrelation",
    "Event",
    "TaskActivity",
    "TaskDeliverable",
    "PlanningQuestion",
    "PlanningSpec",
    "App",
    "AgentSnapshot",
]
