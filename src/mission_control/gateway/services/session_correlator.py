"""SessionCorrelator -- 内部 Agent 与外部运行时会话的映射

persistent 会话名由 Agent 名称确定性生成：mission-control-{小写名称，空白换成 -}。
同一 Agent 至多一条 active persistent 记录；并发创建时以已存在的记录为准。
"""

import re
from datetime import UTC, datetime

import aiosqlite
import structlog
from mission_control.core.errors import (
    ConflictError,
    NotFoundError,
    UpstreamUnavailableError,
)
from mission_control.core.models import (
    Agent,
    EventType,
    NotificationType,
    SessionCorrelation,
    SessionStatus,
    SessionType,
    Task,
)
from mission_control.core.store import StoreGroup, transaction
from mission_control.openclaw import GatewayUnreachableError, OpenClawGatewayClient
from ulid import ULID

from .audit import agent_view, new_event
from .notifier import Notifier

log = structlog.get_logger()

SESSION_CHANNEL = "mission-control"
SESSION_NAME_PREFIX = "mission-control-"


def session_name_for(agent_name: str) -> str:
    """mission-control-{name}，名称转小写、连续空白替换为单个 -"""
    return SESSION_NAME_PREFIX + re.sub(r"\s+", "-", agent_name.strip().lower())


def routing_key(openclaw_agent_id: str, openclaw_session_id: str) -> str:
    """外部运行时的会话路由键"""
    return f"agent:{openclaw_agent_id}:{openclaw_session_id}"


class SessionCorrelator:
    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        gateway: OpenClawGatewayClient,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._gateway = gateway

    async def get_active(self, agent_id: str) -> SessionCorrelation | None:
        return await self._stores.session_store.get_active_session(agent_id)

    async def ensure_session(
        self,
        agent: Agent,
        task_id: str | None = None,
    ) -> tuple[SessionCorrelation, bool]:
        """查找或创建 Agent 的 active persistent 会话

        Returns:
            (会话记录, 是否新建)
        """
        existing = await self._stores.session_store.get_active_session(agent.agent_id)
        if existing is not None:
            return existing, False

        session = SessionCorrelation(
            session_id=str(ULID()),
            agent_id=agent.agent_id,
            task_id=task_id,
            openclaw_session_id=session_name_for(agent.name),
            channel=SESSION_CHANNEL,
            created_at=datetime.now(UTC),
        )
        try:
            async with transaction(self._stores.conn):
                await self._stores.session_store.create_session(session)
                await self._stores.event_store.append_event(
                    new_event(
                        EventType.AGENT_STATUS_CHANGED,
                        f"{agent.name} session created",
                        agent_id=agent.agent_id,
                        task_id=task_id,
                    )
                )
        except aiosqlite.IntegrityError:
            # 并发创建：部分唯一索引拒绝了第二条 active 记录
            winner = await self._stores.session_store.get_active_session(agent.agent_id)
            if winner is None:
                raise
            log.info("session_create_race_resolved", agent_id=agent.agent_id)
            return winner, False

        log.info(
            "session_created",
            agent_id=agent.agent_id,
            openclaw_session_id=session.openclaw_session_id,
        )
        return session, True

    async def link(self, agent: Agent) -> SessionCorrelation:
        """显式关联 Agent 到运行时

        Raises:
            ConflictError: 已存在 active 会话
            UpstreamUnavailableError: 运行时不可达
        """
        if await self._stores.session_store.get_active_session(agent.agent_id) is not None:
            raise ConflictError(
                f"Agent {agent.name} is already linked to an OpenClaw session",
                code="SESSION_ALREADY_ACTIVE",
            )

        try:
            await self._gateway.list_sessions()
        except GatewayUnreachableError as e:
            raise UpstreamUnavailableError(
                "Failed to connect to OpenClaw Gateway",
                code="OPENCLAW_UNAVAILABLE",
            ) from e

        session, created = await self.ensure_session(agent)
        if not created:
            raise ConflictError(
                f"Agent {agent.name} is already linked to an OpenClaw session",
                code="SESSION_ALREADY_ACTIVE",
            )
        async with transaction(self._stores.conn):
            await self._stores.event_store.append_event(
                new_event(
                    EventType.AGENT_STATUS_CHANGED,
                    f"{agent.name} connected to OpenClaw Gateway",
                    agent_id=agent.agent_id,
                )
            )
        return session

    async def unlink(self, agent: Agent) -> SessionCorrelation:
        """结束 Agent 的 active 会话

        Raises:
            NotFoundError: 没有 active 会话
        """
        session = await self._stores.session_store.get_active_session(agent.agent_id)
        if session is None:
            raise NotFoundError(
                f"Agent {agent.name} has no active OpenClaw session",
                code="SESSION_NOT_FOUND",
            )
        async with transaction(self._stores.conn):
            await self._stores.session_store.deactivate_session(session.session_id)
            await self._stores.event_store.append_event(
                new_event(
                    EventType.AGENT_STATUS_CHANGED,
                    f"{agent.name} disconnected from OpenClaw Gateway",
                    agent_id=agent.agent_id,
                )
            )
        log.info("session_unlinked", agent_id=agent.agent_id, session_id=session.session_id)
        return session.model_copy(
            update={"status": SessionStatus.INACTIVE, "ended_at": datetime.now(UTC)}
        )

    async def register_subagent(
        self,
        task: Task,
        openclaw_session_id: str,
        agent_name: str,
    ) -> tuple[SessionCorrelation, Agent]:
        """登记任务下派生出的子 Agent 会话；名称未知时创建 Sub-Agent"""
        now = datetime.now(UTC)
        agent = await self._stores.agent_store.get_agent_by_name(agent_name)
        created_agent = agent is None
        if agent is None:
            agent = Agent(
                agent_id=str(ULID()),
                name=agent_name,
                role="Sub-Agent",
                description=f"Sub-agent spawned for task: {task.title}",
                workspace_id=task.workspace_id,
                created_at=now,
                updated_at=now,
            )

        session = SessionCorrelation(
            session_id=str(ULID()),
            agent_id=agent.agent_id,
            task_id=task.task_id,
            openclaw_session_id=openclaw_session_id,
            channel="subagent",
            session_type=SessionType.SUBAGENT,
            created_at=now,
        )
        async with transaction(self._stores.conn):
            if created_agent:
                await self._stores.agent_store.create_agent(agent)
            await self._stores.session_store.create_session(session)
            await self._stores.event_store.append_event(
                new_event(
                    EventType.AGENT_SPAWNED,
                    f'Sub-agent {agent.name} spawned for "{task.title}"',
                    agent_id=agent.agent_id,
                    task_id=task.task_id,
                    metadata={"openclaw_session_id": openclaw_session_id},
                )
            )

        await self._notifier.publish(
            NotificationType.AGENT_SPAWNED,
            {
                "task_id": task.task_id,
                "session_id": openclaw_session_id,
                "agent": agent_view(agent),
            },
            task_id=task.task_id,
        )
        return session, agent

    async def list_subagents(self, task_id: str) -> list[SessionCorrelation]:
        return await self._stores.session_store.list_sessions_for_task(
            task_id, SessionType.SUBAGENT
        )
