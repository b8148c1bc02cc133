"""枚举定义

包含 TaskStatus 状态机、Priority、AgentStatus、Session 相关枚举、EventType、
Planning 问题分类，以及状态机副作用依赖的状态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机

    主线：planning -> inbox -> assigned -> in_progress -> testing -> review -> done
    旁路：backlog
    """

    PLANNING = "planning"
    INBOX = "inbox"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    TESTING = "testing"
    REVIEW = "review"
    DONE = "done"
    BACKLOG = "backlog"


# 进入这些状态时重新计算 Agent 状态，并触发 App 进度刷新
REVIEW_STATES: set[TaskStatus] = {TaskStatus.REVIEW, TaskStatus.DONE}

# 额度耗尽清扫不触碰的状态
DEPLETION_PROTECTED_STATES: set[TaskStatus] = {TaskStatus.REVIEW, TaskStatus.DONE}

# 额度耗尽时降级回 inbox 的状态；assigned 等其余状态仅清空 assignee
DEPLETION_DEMOTED_STATES: set[TaskStatus] = {TaskStatus.IN_PROGRESS, TaskStatus.TESTING}

# Agent 被视为 working 的任务状态
ACTIVE_WORK_STATES: set[TaskStatus] = {TaskStatus.IN_PROGRESS}

# 完成回调会推进的任务状态来源（session 路径）
COMPLETABLE_STATES: set[TaskStatus] = {TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS}

# 完成回调不再推进的状态
POST_COMPLETION_STATES: set[TaskStatus] = {
    TaskStatus.TESTING,
    TaskStatus.REVIEW,
    TaskStatus.DONE,
}


class Priority(StrEnum):
    """任务优先级"""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


PRIORITY_INDICATORS: dict[Priority, str] = {
    Priority.LOW: "🔵",
    Priority.NORMAL: "⚪",
    Priority.HIGH: "🟡",
    Priority.URGENT: "🔴",
}


class AgentStatus(StrEnum):
    STANDBY = "standby"
    WORKING = "working"
    OFFLINE = "offline"


class SessionStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class SessionType(StrEnum):
    PERSISTENT = "persistent"
    SUBAGENT = "subagent"


class EventType(StrEnum):
    """审计事件类型"""

    TASK_CREATED = "task_created"
    TASK_ASSIGNED = "task_assigned"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_COMPLETED = "task_completed"
    TASK_DISPATCHED = "task_dispatched"
    AGENT_JOINED = "agent_joined"
    AGENT_STATUS_CHANGED = "agent_status_changed"
    AGENT_SPAWNED = "agent_spawned"
    SYSTEM = "system"


class LimitStatus(StrEnum):
    """额度服务上报的粗粒度状态"""

    OK = "ok"
    LOW = "low"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class PlanningCategory(StrEnum):
    """审批路径的问题分类，声明顺序即渲染顺序"""

    GOAL = "goal"
    AUDIENCE = "audience"
    SCOPE = "scope"
    DESIGN = "design"
    CONTENT = "content"
    TECHNICAL = "technical"
    TIMELINE = "timeline"
    CONSTRAINTS = "constraints"


class QuestionType(StrEnum):
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    YES_NO = "yes_no"


class DeliverableType(StrEnum):
    FILE = "file"
    URL = "url"
    ARTIFACT = "artifact"


class NotificationType(StrEnum):
    """Notifier 推送类型"""

    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    AGENT_UPDATED = "agent_updated"
    AGENT_SPAWNED = "agent_spawned"
    ACTIVITY_LOGGED = "activity_logged"
    DELIVERABLE_ADDED = "deliverable_added"
    PLANNING_UPDATED = "planning_updated"
    EVENT_LOGGED = "event_logged"
