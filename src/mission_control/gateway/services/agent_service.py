"""AgentService -- Agent 注册、修改与删除

status 只接受 offline 作为人工覆盖值；其余取值会清除覆盖并交给 AgentStatusSync 推导。
"""

from datetime import UTC, datetime

import structlog
from mission_control.core.config import DEFAULT_WORKSPACE_ID
from mission_control.core.errors import InvalidRequestError, NotFoundError
from mission_control.core.models import Agent, AgentStatus, EventType, NotificationType
from mission_control.core.models.payloads import AgentCreate, AgentUpdate
from mission_control.core.store import StoreGroup, transaction
from ulid import ULID

from .agent_status import AgentStatusSync
from .audit import agent_view, new_event
from .notifier import Notifier

log = structlog.get_logger()


class AgentService:
    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        agent_status: AgentStatusSync,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._agent_status = agent_status

    async def get_agent(self, agent_id: str) -> Agent:
        agent = await self._stores.agent_store.get_agent(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent {agent_id} not found", code="AGENT_NOT_FOUND")
        return agent

    async def list_agents(self, workspace_id: str | None = None) -> list[Agent]:
        """master 优先，其余按名称排序"""
        return await self._stores.agent_store.list_agents(workspace_id)

    async def create_agent(self, payload: AgentCreate) -> Agent:
        if not payload.name or not payload.role:
            raise InvalidRequestError("Name and role are required", code="NAME_ROLE_REQUIRED")

        now = datetime.now(UTC)
        agent = Agent(
            agent_id=str(ULID()),
            name=payload.name,
            role=payload.role,
            description=payload.description,
            avatar_emoji=payload.avatar_emoji or "🤖",
            is_master=payload.is_master,
            workspace_id=payload.workspace_id or DEFAULT_WORKSPACE_ID,
            soul_md=payload.soul_md,
            openclaw_agent_id=payload.openclaw_agent_id,
            model=payload.model or "unknown",
            created_at=now,
            updated_at=now,
        )
        async with transaction(self._stores.conn):
            await self._stores.agent_store.create_agent(agent)
            await self._stores.event_store.append_event(
                new_event(
                    EventType.AGENT_JOINED,
                    f"{agent.name} joined the team",
                    agent_id=agent.agent_id,
                )
            )

        log.info("agent_created", agent_id=agent.agent_id, is_master=agent.is_master)
        await self._notifier.publish(NotificationType.AGENT_UPDATED, agent_view(agent))
        return agent

    async def update_agent(self, agent_id: str, payload: AgentUpdate) -> Agent:
        agent = await self.get_agent(agent_id)
        fields = {name: getattr(payload, name) for name in payload.model_fields_set}
        if not fields:
            raise InvalidRequestError("No updates provided", code="NO_UPDATES")
        if "name" in fields and not fields["name"]:
            raise InvalidRequestError("name cannot be empty")
        if "role" in fields and not fields["role"]:
            raise InvalidRequestError("role cannot be empty")
        if "is_master" in fields and fields["is_master"] is None:
            raise InvalidRequestError("is_master cannot be null")

        requested_status = fields.pop("status", None)
        if requested_status is not None:
            # 非 offline 先清除覆盖，再由任务数据推导
            fields["status"] = (
                AgentStatus.OFFLINE
                if requested_status == AgentStatus.OFFLINE
                else AgentStatus.STANDBY
            )

        if fields:
            async with transaction(self._stores.conn):
                await self._stores.agent_store.update_agent(agent_id, **fields)

        updated = await self._agent_status.sync(agent_id, publish=False)
        if requested_status is not None:
            async with transaction(self._stores.conn):
                await self._stores.event_store.append_event(
                    new_event(
                        EventType.AGENT_STATUS_CHANGED,
                        f"{updated.name} is now {updated.status.value}",
                        agent_id=agent_id,
                        metadata={
                            "from_status": agent.status,
                            "requested": requested_status,
                            "to_status": updated.status,
                        },
                    )
                )

        log.info("agent_updated", agent_id=agent_id, fields=sorted(payload.model_fields_set))
        await self._notifier.publish(NotificationType.AGENT_UPDATED, agent_view(updated))
        return updated

    async def delete_agent(self, agent_id: str) -> None:
        """删除 Agent：移除其会话与事件，清空任务和活动上的引用"""
        await self.get_agent(agent_id)
        affected = await self._stores.task_store.list_tasks(assigned_agent_id=agent_id)

        async with transaction(self._stores.conn):
            await self._stores.session_store.delete_sessions_for_agent(agent_id)
            await self._stores.task_store.clear_agent_references(agent_id)
            await self._stores.activity_store.clear_agent_references(agent_id)
            await self._stores.event_store.delete_events_for_agent(agent_id)
            await self._stores.agent_store.delete_agent(agent_id)

        log.info("agent_deleted", agent_id=agent_id, tasks_unassigned=len(affected))
        await self._notifier.publish(
            NotificationType.AGENT_UPDATED, {"agent_id": agent_id, "deleted": True}
        )
        for task in affected:
            await self._notifier.publish(
                NotificationType.TASK_UPDATED,
                {"task_id": task.task_id, "assigned_agent_id": None},
                task_id=task.task_id,
            )
