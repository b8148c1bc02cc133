"""AgentStatusSync -- Agent 状态的唯一计算入口

Agent.status 由任务数据推导：存在分配给它且处于 in_progress 的任务时为 working，
否则为 standby。offline 是人工设置的覆盖值，保持到被人工清除为止。
派发、进入 review/done、额度清扫、完成回调都只调用 sync()，不直接写 status。
"""

import structlog
from mission_control.core.models import (
    ACTIVE_WORK_STATES,
    Agent,
    AgentStatus,
    NotificationType,
)
from mission_control.core.store import StoreGroup, transaction

from .audit import agent_view
from .notifier import Notifier

log = structlog.get_logger()


class AgentStatusSync:
    def __init__(self, store_group: StoreGroup, notifier: Notifier) -> None:
        self._stores = store_group
        self._notifier = notifier

    async def derive(self, agent: Agent) -> AgentStatus:
        """根据当前任务分布计算 Agent 应处的状态"""
        if agent.status == AgentStatus.OFFLINE:
            return AgentStatus.OFFLINE
        active = await self._stores.task_store.count_tasks_for_agent(
            agent.agent_id, ACTIVE_WORK_STATES
        )
        return AgentStatus.WORKING if active else AgentStatus.STANDBY

    async def sync(self, agent_id: str | None, publish: bool = True) -> Agent | None:
        """重新计算并持久化 Agent 状态

        Args:
            agent_id: Agent ID，None 时直接返回
            publish: 状态变化时是否推送 agent_updated

        Returns:
            最新 Agent，不存在时返回 None
        """
        if agent_id is None:
            return None
        agent = await self._stores.agent_store.get_agent(agent_id)
        if agent is None:
            return None

        derived = await self.derive(agent)
        if derived == agent.status:
            return agent

        async with transaction(self._stores.conn):
            await self._stores.agent_store.update_agent(agent_id, status=derived)
        log.info(
            "agent_status_derived",
            agent_id=agent_id,
            from_status=agent.status.value,
            to_status=derived.value,
        )
        agent = agent.model_copy(update={"status": derived})
        if publish:
            await self._notifier.publish(NotificationType.AGENT_UPDATED, agent_view(agent))
        return agent
