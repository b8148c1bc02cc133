"""CompletionIntake -- Agent 完成信号入口

两种形态:
- {task_id, summary}: 结构化回调
- {session_id, message}: 自由文本，message 需包含 "TASK_COMPLETE: <summary>"；
  通过 active 会话定位 Agent，再取其最近更新的 assigned/in_progress 任务
任务推进到 testing（已在 testing/review/done 的保持不变），记录 task_completed，
并重新计算 Agent 状态。
"""

import re
from typing import Any

import structlog
from mission_control.core.config import RECENT_COMPLETIONS_LIMIT
from mission_control.core.errors import InvalidRequestError, NotFoundError
from mission_control.core.models import (
    COMPLETABLE_STATES,
    POST_COMPLETION_STATES,
    EventType,
    NotificationType,
    Task,
    TaskStatus,
)
from mission_control.core.models.payloads import CompletionWebhook
from mission_control.core.store import StoreGroup

from .agent_status import AgentStatusSync
from .audit import new_event, task_view
from .notifier import Notifier
from .task_writer import TaskWriter

log = structlog.get_logger()

COMPLETION_PATTERN = re.compile(r"TASK_COMPLETE:\s*(.+)", re.IGNORECASE)


def extract_completion_summary(message: str) -> str | None:
    """从自由文本中提取完成摘要，未命中返回 None"""
    match = COMPLETION_PATTERN.search(message)
    if match is None:
        return None
    return match.group(1).strip()


class CompletionIntake:
    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        writer: TaskWriter,
        agent_status: AgentStatusSync,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._writer = writer
        self._agent_status = agent_status

    async def handle(self, payload: CompletionWebhook) -> dict[str, Any]:
        if payload.task_id:
            task = await self._stores.task_store.get_task(payload.task_id)
            if task is None:
                raise NotFoundError(f"Task {payload.task_id} not found", code="TASK_NOT_FOUND")
            return await self._complete(task, payload.summary)

        if payload.session_id and payload.message:
            summary = extract_completion_summary(payload.message)
            if summary is None:
                raise InvalidRequestError(
                    "Message must contain TASK_COMPLETE: <summary>",
                    code="COMPLETION_SENTINEL_MISSING",
                )
            session = await self._stores.session_store.find_active_by_openclaw_id(
                payload.session_id
            )
            if session is None:
                raise NotFoundError(
                    f"No active session {payload.session_id}",
                    code="SESSION_NOT_FOUND",
                )
            task = await self._stores.task_store.get_latest_task_for_agent(
                session.agent_id, COMPLETABLE_STATES
            )
            if task is None:
                raise NotFoundError(
                    "No active task found for this agent",
                    code="TASK_NOT_FOUND",
                )
            return await self._complete(task, summary)

        raise InvalidRequestError(
            "Invalid payload: provide either {task_id, summary} or {session_id, message}",
            code="INVALID_COMPLETION_PAYLOAD",
        )

    async def _complete(self, task: Task, summary: str | None) -> dict[str, Any]:
        agent = None
        if task.assigned_agent_id:
            agent = await self._stores.agent_store.get_agent(task.assigned_agent_id)
        agent_name = agent.name if agent else "Agent"
        text = summary or "Task finished"

        def to_testing(current: Task) -> Task:
            if current.status in POST_COMPLETION_STATES:
                return current.model_copy()
            return current.model_copy(update={"status": TaskStatus.TESTING})

        def completion_event(old: Task, new: Task) -> list:
            return [
                new_event(
                    EventType.TASK_COMPLETED,
                    f"{agent_name} completed: {text}",
                    agent_id=agent.agent_id if agent else None,
                    task_id=new.task_id,
                    metadata={"summary": text, "from_status": old.status, "to_status": new.status},
                )
            ]

        _, saved = await self._writer.apply(task.task_id, to_testing, events=completion_event)
        if agent is not None:
            await self._agent_status.sync(agent.agent_id)

        log.info(
            "task_completion_received",
            task_id=saved.task_id,
            agent_id=agent.agent_id if agent else None,
            status=saved.status.value,
        )
        await self._notifier.publish(
            NotificationType.TASK_UPDATED, task_view(saved, agent), task_id=saved.task_id
        )
        return {
            "success": True,
            "task_id": saved.task_id,
            "new_status": saved.status.value,
            "message": "Completion recorded",
        }

    async def recent_completions(self) -> list[dict[str, Any]]:
        events = await self._stores.event_store.list_events(
            limit=RECENT_COMPLETIONS_LIMIT,
            event_type=EventType.TASK_COMPLETED.value,
        )
        return [e.model_dump(mode="json") for e in events]
