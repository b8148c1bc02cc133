"""TaskService -- 任务状态机与变更副作用

PATCH 的副作用：
- 任意状态变化写审计事件（进入 done 为 task_completed，其余为 task_status_changed）
- 进入 assigned 且已有负责人时触发派发
- 变更负责人时写 task_assigned；新旧状态任一为 assigned 时触发派发
- 进入 review/done 时重新计算 Agent 状态；关联 App 时后台刷新进度
- review -> done 仅允许本工作区的 master Agent 执行；无 Agent 身份视为人工操作
派发与进度刷新在后台执行，失败只记录日志。
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from mission_control.core.config import DEFAULT_WORKSPACE_ID
from mission_control.core.errors import (
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from mission_control.core.models import (
    REVIEW_STATES,
    Agent,
    Event,
    EventType,
    NotificationType,
    Priority,
    Task,
    TaskStatus,
)
from mission_control.core.models.payloads import TaskCreate, TaskUpdate
from mission_control.core.store import StoreGroup, transaction
from ulid import ULID

from .agent_status import AgentStatusSync
from .app_service import AppService
from .audit import new_event, task_view
from .background import BackgroundRunner
from .dispatcher import Dispatcher
from .notifier import Notifier
from .task_writer import TaskWriter

log = structlog.get_logger()

# PATCH 可修改的字段
_PATCHABLE_FIELDS = {
    "title",
    "description",
    "status",
    "priority",
    "assigned_agent_id",
    "due_date",
    "app_id",
}

# 不可置空的字段
_NON_NULLABLE_FIELDS = {"title", "status", "priority"}


def parse_status_filter(raw: str | None) -> list[TaskStatus] | None:
    """解析逗号分隔的状态筛选，如 "inbox,assigned" """
    if not raw:
        return None
    try:
        return [TaskStatus(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise InvalidRequestError(f"Invalid status filter: {raw}") from e


class TaskService:
    """任务业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        runner: BackgroundRunner,
        writer: TaskWriter,
        agent_status: AgentStatusSync,
        dispatcher: Dispatcher,
        app_service: AppService,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._runner = runner
        self._writer = writer
        self._agent_status = agent_status
        self._dispatcher = dispatcher
        self._app_service = app_service

    # -- 查询 --

    async def get_task(self, task_id: str) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")
        return task

    async def list_tasks(
        self,
        status: str | None = None,
        workspace_id: str | None = None,
        assigned_agent_id: str | None = None,
        app_id: str | None = None,
    ) -> list[Task]:
        """查询任务列表，按 created_at 倒序"""
        return await self._stores.task_store.list_tasks(
            statuses=parse_status_filter(status),
            workspace_id=workspace_id,
            assigned_agent_id=assigned_agent_id,
            app_id=app_id,
        )

    async def view(self, task: Task) -> dict[str, Any]:
        agent = None
        if task.assigned_agent_id:
            agent = await self._stores.agent_store.get_agent(task.assigned_agent_id)
        return task_view(task, agent)

    async def views(self, tasks: list[Task]) -> list[dict[str, Any]]:
        agents = {a.agent_id: a for a in await self._stores.agent_store.list_agents()}
        return [task_view(t, agents.get(t.assigned_agent_id or "")) for t in tasks]

    # -- 创建 --

    async def create_task(self, payload: TaskCreate) -> Task:
        """创建任务：默认 inbox / normal / default 工作区"""
        if not payload.title or not payload.title.strip():
            raise InvalidRequestError("Title is required", code="TITLE_REQUIRED")

        creator = None
        if payload.created_by_agent_id:
            creator = await self._require_agent(payload.created_by_agent_id)
        if payload.assigned_agent_id:
            await self._require_agent(payload.assigned_agent_id)
        if payload.app_id:
            await self._app_service.get_app(payload.app_id)

        now = datetime.now(UTC)
        task = Task(
            task_id=str(ULID()),
            title=payload.title.strip(),
            description=payload.description,
            status=payload.status or TaskStatus.INBOX,
            priority=payload.priority or Priority.NORMAL,
            assigned_agent_id=payload.assigned_agent_id,
            created_by_agent_id=payload.created_by_agent_id,
            workspace_id=payload.workspace_id or DEFAULT_WORKSPACE_ID,
            app_id=payload.app_id,
            due_date=payload.due_date,
            created_at=now,
            updated_at=now,
        )
        message = (
            f"{creator.name} created task: {task.title}"
            if creator
            else f"New task: {task.title}"
        )
        async with transaction(self._stores.conn):
            await self._stores.task_store.create_task(task)
            await self._stores.event_store.append_event(
                new_event(
                    EventType.TASK_CREATED,
                    message,
                    agent_id=creator.agent_id if creator else None,
                    task_id=task.task_id,
                )
            )

        log.info("task_created", task_id=task.task_id, status=task.status.value)
        await self._notifier.publish(
            NotificationType.TASK_CREATED, await self.view(task), task_id=task.task_id
        )
        return task

    # -- 更新 --

    async def update_task(self, task_id: str, payload: TaskUpdate) -> Task:
        """PATCH 语义：只修改显式提供的字段

        Raises:
            InvalidRequestError: 未提供任何可修改字段，或对必填字段置空
            NotFoundError: 任务、新负责人或 App 不存在
            ForbiddenError: 非 master Agent 尝试 review -> done
            ConflictError: 版本冲突
        """
        fields = payload.model_fields_set & _PATCHABLE_FIELDS
        if not fields:
            raise InvalidRequestError("No updates provided", code="NO_UPDATES")
        for name in fields & _NON_NULLABLE_FIELDS:
            if getattr(payload, name) is None:
                raise InvalidRequestError(f"{name} cannot be null")

        new_agent: Agent | None = None
        if "assigned_agent_id" in fields and payload.assigned_agent_id:
            new_agent = await self._require_agent(payload.assigned_agent_id)
        if "app_id" in fields and payload.app_id:
            await self._app_service.get_app(payload.app_id)

        actor: Agent | None = None
        if payload.updated_by_agent_id:
            actor = await self._stores.agent_store.get_agent(payload.updated_by_agent_id)

        changes = {name: getattr(payload, name) for name in fields}
        if "title" in changes:
            changes["title"] = changes["title"].strip()

        def mutate(current: Task) -> Task:
            if (
                changes.get("status") == TaskStatus.DONE
                and current.status == TaskStatus.REVIEW
                and payload.updated_by_agent_id is not None
            ):
                self._check_master_approval(actor, current)
            return current.model_copy(update=changes)

        def build_events(old: Task, new: Task) -> list[Event]:
            events: list[Event] = []
            if new.status != old.status:
                event_type = (
                    EventType.TASK_COMPLETED
                    if new.status == TaskStatus.DONE
                    else EventType.TASK_STATUS_CHANGED
                )
                events.append(
                    new_event(
                        event_type,
                        f'Task "{new.title}" moved to {new.status.value}',
                        agent_id=actor.agent_id if actor else new.assigned_agent_id,
                        task_id=new.task_id,
                        metadata={"from_status": old.status, "to_status": new.status},
                    )
                )
            if new_agent is not None and new.assigned_agent_id != old.assigned_agent_id:
                events.append(
                    new_event(
                        EventType.TASK_ASSIGNED,
                        f'"{new.title}" assigned to {new_agent.name}',
                        agent_id=new_agent.agent_id,
                        task_id=new.task_id,
                        metadata={"previous_agent_id": old.assigned_agent_id},
                    )
                )
            return events

        old, new = await self._writer.apply(
            task_id,
            mutate,
            events=build_events,
            expected_version=payload.version,
        )
        await self._after_update(old, new)
        return new

    async def _after_update(self, old: Task, new: Task) -> None:
        status_changed = new.status != old.status
        assignee_changed = new.assigned_agent_id != old.assigned_agent_id

        should_dispatch = False
        if status_changed and new.status == TaskStatus.ASSIGNED and new.assigned_agent_id:
            should_dispatch = True
        if (
            assignee_changed
            and new.assigned_agent_id
            and TaskStatus.ASSIGNED in (old.status, new.status)
        ):
            should_dispatch = True

        if status_changed or assignee_changed:
            for agent_id in {old.assigned_agent_id, new.assigned_agent_id} - {None}:
                await self._agent_status.sync(agent_id)

        if status_changed and new.status in REVIEW_STATES and new.app_id:
            self.schedule_progress_refresh(new.app_id)

        log.info(
            "task_updated",
            task_id=new.task_id,
            from_status=old.status.value,
            to_status=new.status.value,
            version=new.version,
        )
        await self._notifier.publish(
            NotificationType.TASK_UPDATED, await self.view(new), task_id=new.task_id
        )

        if should_dispatch:
            self.schedule_dispatch(new.task_id)

    @staticmethod
    def _check_master_approval(actor: Agent | None, task: Task) -> None:
        if actor is None or not actor.is_master or actor.workspace_id != task.workspace_id:
            raise ForbiddenError(
                "Only the master agent can approve tasks from review to done",
                code="MASTER_APPROVAL_REQUIRED",
            )

    # -- 删除 --

    async def delete_task(self, task_id: str) -> None:
        """删除任务及其会话、事件、活动、交付物、Planning 记录；不删除 Agent"""
        task = await self.get_task(task_id)
        async with transaction(self._stores.conn):
            await self._stores.session_store.delete_sessions_for_task(task_id)
            await self._stores.event_store.delete_events_for_task(task_id)
            await self._stores.activity_store.delete_for_task(task_id)
            await self._stores.planning_store.delete_for_task(task_id)
            await self._stores.task_store.delete_task(task_id)

        self._runner.cancel(f"planning:{task_id}")
        await self._agent_status.sync(task.assigned_agent_id)
        log.info("task_deleted", task_id=task_id)
        await self._notifier.publish(
            NotificationType.TASK_DELETED, {"task_id": task_id}, task_id=task_id
        )

    # -- 后台动作 --

    def schedule_dispatch(self, task_id: str) -> None:
        self._runner.spawn(
            f"dispatch:{task_id}",
            lambda: self._dispatcher.dispatch(task_id),
        )

    def schedule_progress_refresh(self, app_id: str) -> None:
        self._runner.spawn(
            f"app_progress:{app_id}",
            lambda: self._app_service.refresh_progress(app_id),
        )

    async def _require_agent(self, agent_id: str) -> Agent:
        agent = await self._stores.agent_store.get_agent(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent {agent_id} not found", code="AGENT_NOT_FOUND")
        return agent
