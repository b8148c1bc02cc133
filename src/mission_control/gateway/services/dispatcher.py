"""Dispatcher -- 把任务简报投递到 Agent 的运行时会话

流程:
1. 校验 Task 存在且已分配；Agent 存在且有 openclaw_agent_id
2. 确保 persistent 会话存在（新建时记录事件）
3. 生成简报：优先级、标题、描述、截止日期、任务 ID、App 上下文、三步收尾动作与完成标记
4. chat.send，idempotencyKey = dispatch-{task_id}-{unix_ms}
5. 成功：Task -> in_progress，重新计算 Agent 状态，记录 task_dispatched
6. 失败：不修改 Task / Agent，错误直接上抛，不自动重试
"""

import time
from typing import Any

import structlog
from mission_control.core.config import get_base_url
from mission_control.core.errors import InvalidRequestError, NotFoundError
from mission_control.core.models import (
    PRIORITY_INDICATORS,
    Agent,
    App,
    EventType,
    NotificationType,
    Task,
    TaskStatus,
)
from mission_control.core.store import StoreGroup
from mission_control.openclaw import OpenClawGatewayClient

from .agent_status import AgentStatusSync
from .audit import new_event, task_view
from .notifier import Notifier
from .session_correlator import SessionCorrelator, routing_key
from .task_writer import TaskWriter
from .upstream import gateway_errors

log = structlog.get_logger()

COMPLETION_SENTINEL = "TASK_COMPLETE:"


def compose_briefing(task: Task, app: App | None, base_url: str) -> str:
    """生成派发给 Agent 的任务简报"""
    indicator = PRIORITY_INDICATORS.get(task.priority, "⚪")
    task_url = f"{base_url}/api/tasks/{task.task_id}"

    lines = [
        f"{indicator} **NEW TASK ASSIGNED**",
        "",
        f"**Title:** {task.title}",
    ]
    if task.description:
        lines.append(f"**Description:** {task.description}")
    lines.append(f"**Priority:** {task.priority.value.upper()}")
    if task.due_date:
        lines.append(f"**Due:** {task.due_date}")
    lines.append(f"**Task ID:** {task.task_id}")

    if app is not None:
        lines += ["", "## APP CONTEXT", f"- **App**: {app.name}", f"- **Path**: `{app.path}`"]
        if app.port:
            lines.append(f"- **Port**: {app.port} (access at http://localhost:{app.port})")
        lines.append(f"- **PRD**: Check `{app.path}/.ralphy/PRD.md` if it exists for feature specs")

    lines += [
        "",
        "## After Completing Work",
        f"1. Log activity: POST {task_url}/activities",
        '   Body: {"activity_type": "completed", "message": "Description of what was done"}',
        f"2. Register deliverable (list each changed file): POST {task_url}/deliverables",
        '   Body: {"deliverable_type": "file", "title": "filename", "path": "/absolute/path"}',
        f"3. Update status: PATCH {task_url}",
        '   Body: {"status": "review"}',
        "",
        "When complete, reply with:",
        f"`{COMPLETION_SENTINEL} [brief summary of what you did]`",
    ]
    return "\n".join(lines)


class Dispatcher:
    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        gateway: OpenClawGatewayClient,
        correlator: SessionCorrelator,
        writer: TaskWriter,
        agent_status: AgentStatusSync,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._gateway = gateway
        self._correlator = correlator
        self._writer = writer
        self._agent_status = agent_status

    async def _load_target(self, task_id: str) -> tuple[Task, Agent]:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")
        if not task.assigned_agent_id:
            raise InvalidRequestError("Task has no assigned agent", code="TASK_NOT_ASSIGNED")

        agent = await self._stores.agent_store.get_agent(task.assigned_agent_id)
        if agent is None:
            raise NotFoundError(
                f"Assigned agent {task.assigned_agent_id} not found",
                code="AGENT_NOT_FOUND",
            )
        if not agent.openclaw_agent_id:
            raise InvalidRequestError(
                f"Agent {agent.name} has no openclaw_agent_id",
                code="AGENT_NOT_CORRELATED",
            )
        return task, agent

    async def dispatch(self, task_id: str) -> dict[str, Any]:
        """派发任务

        Raises:
            NotFoundError / InvalidRequestError: 前置条件不满足，无任何状态变化
            UpstreamUnavailableError: 运行时不可达（503，可重试）
            UpstreamProtocolError: 运行时拒绝投递（502）
        """
        task, agent = await self._load_target(task_id)
        session, _ = await self._correlator.ensure_session(agent, task_id=task.task_id)

        app = await self._stores.app_store.get_app(task.app_id) if task.app_id else None
        briefing = compose_briefing(task, app, get_base_url())
        session_key = routing_key(agent.openclaw_agent_id, session.openclaw_session_id)
        idempotency_key = f"dispatch-{task.task_id}-{int(time.time() * 1000)}"

        with gateway_errors("dispatch", task_id=task_id, agent_id=agent.agent_id):
            await self._gateway.send_chat(session_key, briefing, idempotency_key)

        _, saved = await self._writer.apply(
            task.task_id,
            lambda t: t.model_copy(update={"status": TaskStatus.IN_PROGRESS}),
            events=lambda old, new: [
                new_event(
                    EventType.TASK_DISPATCHED,
                    f'Task "{new.title}" dispatched to {agent.name}',
                    agent_id=agent.agent_id,
                    task_id=new.task_id,
                    metadata={"idempotency_key": idempotency_key, "from_status": old.status},
                )
            ],
        )
        await self._agent_status.sync(agent.agent_id)
        await self._notifier.publish(
            NotificationType.TASK_UPDATED, task_view(saved, agent), task_id=saved.task_id
        )

        log.info(
            "task_dispatched",
            task_id=task.task_id,
            agent_id=agent.agent_id,
            session_key=session_key,
        )
        return {
            "success": True,
            "task_id": task.task_id,
            "agent_id": agent.agent_id,
            "session_id": session.openclaw_session_id,
            "message": "Task dispatched to agent",
        }
