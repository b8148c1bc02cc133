"""ActivityService -- 任务活动记录、交付物与审计事件流"""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog
from mission_control.core.errors import InvalidRequestError, NotFoundError
from mission_control.core.models import (
    DeliverableType,
    Event,
    NotificationType,
    TaskActivity,
    TaskDeliverable,
)
from mission_control.core.models.payloads import ActivityCreate, DeliverableCreate, EventCreate
from mission_control.core.store import StoreGroup, transaction
from ulid import ULID

from .audit import new_event
from .notifier import Notifier

log = structlog.get_logger()

# 事件流默认/最大条数
DEFAULT_EVENT_LIMIT = 50
MAX_EVENT_LIMIT = 500


def normalize_activity_metadata(metadata: dict[str, Any] | None) -> dict[str, Any]:
    """model 归一为字符串，tokens_in / tokens_out 归一为整数，其余键原样保留"""
    data = dict(metadata or {})
    if data.get("model") is not None:
        data["model"] = str(data["model"])
    for key in ("tokens_in", "tokens_out"):
        if data.get(key) is None:
            continue
        try:
            data[key] = int(data[key])
        except (TypeError, ValueError) as e:
            raise InvalidRequestError(f"{key} must be an integer") from e
    return data


class ActivityService:
    def __init__(self, store_group: StoreGroup, notifier: Notifier) -> None:
        self._stores = store_group
        self._notifier = notifier

    async def _require_task(self, task_id: str) -> None:
        if await self._stores.task_store.get_task(task_id) is None:
            raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")

    async def _require_agent(self, agent_id: str) -> None:
        if await self._stores.agent_store.get_agent(agent_id) is None:
            raise NotFoundError(f"Agent {agent_id} not found", code="AGENT_NOT_FOUND")

    # -- 活动 --

    async def log_activity(self, task_id: str, payload: ActivityCreate) -> TaskActivity:
        if not payload.activity_type or not payload.message:
            raise InvalidRequestError(
                "activity_type and message are required", code="ACTIVITY_FIELDS_REQUIRED"
            )
        await self._require_task(task_id)
        if payload.agent_id:
            await self._require_agent(payload.agent_id)

        activity = TaskActivity(
            activity_id=str(ULID()),
            task_id=task_id,
            agent_id=payload.agent_id,
            activity_type=payload.activity_type,
            message=payload.message,
            metadata=normalize_activity_metadata(payload.metadata),
            created_at=datetime.now(UTC),
        )
        async with transaction(self._stores.conn):
            await self._stores.activity_store.append_activity(activity)

        log.info(
            "task_activity_logged",
            task_id=task_id,
            activity_type=activity.activity_type,
        )
        await self._notifier.publish(
            NotificationType.ACTIVITY_LOGGED, activity.model_dump(mode="json"), task_id=task_id
        )
        return activity

    async def list_activities(self, task_id: str) -> list[TaskActivity]:
        await self._require_task(task_id)
        return await self._stores.activity_store.list_activities(task_id)

    # -- 交付物 --

    async def add_deliverable(self, task_id: str, payload: DeliverableCreate) -> dict[str, Any]:
        """登记交付物；file 类型的路径不存在时仍然登记，但附带 warning"""
        if not payload.deliverable_type or not payload.title:
            raise InvalidRequestError(
                "deliverable_type and title are required", code="DELIVERABLE_FIELDS_REQUIRED"
            )
        await self._require_task(task_id)

        path = payload.path
        warning = None
        if payload.deliverable_type == DeliverableType.FILE and path:
            resolved = Path(path).expanduser()
            path = str(resolved)
            if not await asyncio.to_thread(resolved.exists):
                warning = f"File does not exist: {path}"
                log.warning("deliverable_path_missing", task_id=task_id, path=path)

        deliverable = TaskDeliverable(
            deliverable_id=str(ULID()),
            task_id=task_id,
            deliverable_type=payload.deliverable_type,
            title=payload.title,
            path=path,
            description=payload.description,
            created_at=datetime.now(UTC),
        )
        async with transaction(self._stores.conn):
            await self._stores.activity_store.add_deliverable(deliverable)

        data = deliverable.model_dump(mode="json")
        await self._notifier.publish(NotificationType.DELIVERABLE_ADDED, data, task_id=task_id)
        if warning:
            data["warning"] = warning
        return data

    async def list_deliverables(self, task_id: str) -> list[TaskDeliverable]:
        await self._require_task(task_id)
        return await self._stores.activity_store.list_deliverables(task_id)

    # -- 事件流 --

    async def list_events(
        self,
        limit: int = DEFAULT_EVENT_LIMIT,
        since: str | None = None,
        task_id: str | None = None,
        agent_id: str | None = None,
        event_type: str | None = None,
    ) -> list[Event]:
        """审计事件流，最新在前"""
        return await self._stores.event_store.list_events(
            limit=max(1, min(limit, MAX_EVENT_LIMIT)),
            task_id=task_id,
            agent_id=agent_id,
            event_type=event_type,
            since=since,
        )

    async def log_event(self, payload: EventCreate) -> Event:
        if not payload.message:
            raise InvalidRequestError("message is required", code="MESSAGE_REQUIRED")
        if payload.task_id:
            await self._require_task(payload.task_id)
        if payload.agent_id:
            await self._require_agent(payload.agent_id)

        event = new_event(
            payload.type,
            payload.message,
            agent_id=payload.agent_id,
            task_id=payload.task_id,
            metadata=payload.metadata,
        )
        async with transaction(self._stores.conn):
            await self._stores.event_store.append_event(event)
        await self._notifier.publish(
            NotificationType.EVENT_LOGGED, event.model_dump(mode="json"), task_id=event.task_id
        )
        return event
