"""CapacityMonitor -- 额度轮询与耗尽重分配

对每个有 openclaw_agent_id、且额度服务有对应条目（至少一个窗口有数值）的 Agent：
1. 有效 5h 额度 = 上报值，未上报时沿用本地旧值（默认 100）
2. 上报 critical 或有效 5h < 10 视为耗尽
3. 耗尽：所有未处于 review/done 的任务清空负责人，in_progress/testing 降级为 inbox，
   每个任务记录一条 limit_depleted 事件并推送
4. 持久化额度/模型/账号字段与 last_poll_at，重新计算 Agent 状态并推送
5. 仅当 5h 上报值变化超过 5 个百分点时记录容量事件
6. 为所有 Agent 记录状态快照并清理 7 天前的快照（失败只记日志）
额度服务不可用时不修改任何 Agent。
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from mission_control.core.config import (
    CAPACITY_EVENT_DELTA,
    DEFAULT_LIMIT_PERCENT,
    DEPLETION_THRESHOLD,
)
from mission_control.core.errors import UpstreamUnavailableError
from mission_control.core.models import (
    DEPLETION_DEMOTED_STATES,
    DEPLETION_PROTECTED_STATES,
    Agent,
    AgentSnapshot,
    EventType,
    LimitStatus,
    NotificationType,
    Task,
    TaskStatus,
)
from mission_control.core.store import StoreGroup, transaction
from mission_control.openclaw import AgentLimitReport, LimitsClient, LimitsUnavailableError
from ulid import ULID

from .agent_status import AgentStatusSync
from .audit import agent_view, new_event, task_view
from .notifier import Notifier
from .task_writer import TaskWriter

log = structlog.get_logger()

_MODEL_SHORT_NAMES = (
    ("opus-4-6", "opus 4.6"),
    ("opus-4-5", "opus 4.5"),
    ("sonnet-4-5", "sonnet 4.5"),
    ("haiku-4-5", "haiku 4.5"),
    ("glm-5", "GLM-5"),
    ("codex", "codex"),
)

# 快照保留时长与查询窗口（小时）
SNAPSHOT_RETENTION = timedelta(days=7)
DEFAULT_SNAPSHOT_HOURS = 24
MAX_SNAPSHOT_HOURS = 168

_PROVIDER_ACCOUNTS = {
    "anthropic": "anthropic",
    "z-ai": "zai",
    "openai": "openai",
    "gemini": "gemini",
}


def short_model_name(model: str) -> str:
    """provider/model-id -> 看板展示用的短名"""
    for marker, short in _MODEL_SHORT_NAMES:
        if marker in model:
            return short
    return model.split("/")[-1]


def provider_account_id(provider_type: str) -> str:
    return _PROVIDER_ACCOUNTS.get(provider_type, provider_type)


def is_depleted(status: str, effective_5h: float) -> bool:
    return status == LimitStatus.CRITICAL or effective_5h < DEPLETION_THRESHOLD


def _percent(value: float | None) -> int | None:
    return None if value is None else int(round(value))


class CapacityMonitor:
    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        limits_client: LimitsClient,
        writer: TaskWriter,
        agent_status: AgentStatusSync,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._limits = limits_client
        self._writer = writer
        self._agent_status = agent_status

    async def list_limits(self) -> list[dict[str, Any]]:
        agents = await self._stores.agent_store.list_agents()
        return [
            {
                "agent_id": a.agent_id,
                "name": a.name,
                "model": a.model,
                "provider_account_id": a.provider_account_id,
                "limit_5h": a.limit_5h,
                "limit_week": a.limit_week,
                "last_poll_at": a.last_poll_at.isoformat() if a.last_poll_at else None,
            }
            for a in agents
        ]

    async def poll(self) -> dict[str, Any]:
        """执行一轮额度轮询

        Raises:
            UpstreamUnavailableError: 额度服务不可用（502），未修改任何 Agent
        """
        try:
            reports = await self._limits.fetch_limits()
        except LimitsUnavailableError as e:
            log.error("limits_poll_failed", reason=e.reason, limits_url=e.limits_url)
            raise UpstreamUnavailableError(
                "Agent-limits service unavailable",
                code="LIMITS_UNAVAILABLE",
                status_code=502,
            ) from e

        by_openclaw_id = {r.id: r for r in reports}
        polled_at = datetime.now(UTC)
        agents_updated = 0
        tasks_unassigned = 0

        for agent in await self._stores.agent_store.list_agents():
            if not agent.openclaw_agent_id:
                continue
            report = by_openclaw_id.get(agent.openclaw_agent_id)
            if report is None or (report.limit_5h is None and report.limit_week is None):
                continue
            tasks_unassigned += await self._apply_report(agent, report, polled_at)
            agents_updated += 1

        await self._record_snapshots(polled_at)

        log.info(
            "limits_poll_completed",
            agents_updated=agents_updated,
            tasks_unassigned=tasks_unassigned,
        )
        return {
            "success": True,
            "polled_at": polled_at.isoformat(),
            "agents_updated": agents_updated,
            "tasks_unassigned": tasks_unassigned,
            "source": self._limits.limits_url,
        }

    async def _apply_report(
        self,
        agent: Agent,
        report: AgentLimitReport,
        polled_at: datetime,
    ) -> int:
        old_5h = agent.limit_5h if agent.limit_5h is not None else DEFAULT_LIMIT_PERCENT
        effective_5h = _percent(report.limit_5h) if report.limit_5h is not None else old_5h
        limit_week = _percent(report.limit_week)
        if limit_week is None:
            limit_week = agent.limit_week if agent.limit_week is not None else DEFAULT_LIMIT_PERCENT
        depleted = is_depleted(report.status, effective_5h)

        async with transaction(self._stores.conn):
            await self._stores.agent_store.update_agent(
                agent.agent_id,
                limit_5h=effective_5h,
                limit_week=limit_week,
                model=short_model_name(report.model) if report.model else agent.model,
                provider_account_id=(
                    provider_account_id(report.provider_type)
                    if report.provider_type
                    else agent.provider_account_id
                ),
                last_poll_at=polled_at,
            )
            if report.limit_5h is not None:
                diff = effective_5h - old_5h
                if abs(diff) > CAPACITY_EVENT_DELTA:
                    direction = "recovered" if diff > 0 else "dropped"
                    await self._stores.event_store.append_event(
                        new_event(
                            EventType.AGENT_STATUS_CHANGED,
                            f"{agent.name} capacity {direction} to {effective_5h}%",
                            agent_id=agent.agent_id,
                            metadata={"old": old_5h, "new": effective_5h, "direction": direction},
                        )
                    )

        unassigned = 0
        if depleted:
            log.warning(
                "agent_capacity_depleted",
                agent_id=agent.agent_id,
                limit_5h=effective_5h,
                reported_status=report.status,
            )
            unassigned = await self._evacuate(agent, effective_5h)

        refreshed = await self._agent_status.sync(agent.agent_id, publish=False)
        if refreshed is not None:
            await self._notifier.publish(NotificationType.AGENT_UPDATED, agent_view(refreshed))
        return unassigned

    async def _evacuate(self, agent: Agent, effective_5h: int) -> int:
        """清空耗尽 Agent 的在途任务，review/done 不受影响"""
        tasks = await self._stores.task_store.list_tasks(
            assigned_agent_id=agent.agent_id,
            exclude_statuses=DEPLETION_PROTECTED_STATES,
        )
        count = 0
        for task in tasks:

            def unassign(current: Task) -> Task | None:
                # 读到的记录可能已被并发改写
                if (
                    current.assigned_agent_id != agent.agent_id
                    or current.status in DEPLETION_PROTECTED_STATES
                ):
                    return None
                status = (
                    TaskStatus.INBOX
                    if current.status in DEPLETION_DEMOTED_STATES
                    else current.status
                )
                return current.model_copy(update={"assigned_agent_id": None, "status": status})

            def depletion_event(old: Task, new: Task) -> list:
                return [
                    new_event(
                        EventType.TASK_STATUS_CHANGED,
                        f'{agent.name} unassigned from "{new.title}": '
                        f"out of capacity ({effective_5h}%)",
                        agent_id=agent.agent_id,
                        task_id=new.task_id,
                        metadata={
                            "reason": "limit_depleted",
                            "limit_5h": effective_5h,
                            "from_status": old.status,
                            "to_status": new.status,
                        },
                    )
                ]

            old, new = await self._writer.apply(task.task_id, unassign, events=depletion_event)
            if new is old:
                continue
            count += 1
            await self._notifier.publish(
                NotificationType.TASK_UPDATED, task_view(new), task_id=new.task_id
            )
        return count

    # -- 快照 --

    async def _record_snapshots(self, polled_at: datetime) -> None:
        """记录本轮所有 Agent 的快照并清理过期快照；失败不影响轮询结果"""
        try:
            snapshots = []
            for agent in await self._stores.agent_store.list_agents():
                active = await self._stores.task_store.list_tasks(
                    assigned_agent_id=agent.agent_id,
                    exclude_statuses=DEPLETION_PROTECTED_STATES,
                )
                task = active[0] if active else None
                limit_5h, limit_week = (
                    DEFAULT_LIMIT_PERCENT if value is None else value
                    for value in (agent.limit_5h, agent.limit_week)
                )
                snapshots.append(
                    AgentSnapshot(
                        snapshot_id=str(ULID()),
                        snapshot_time=polled_at,
                        agent_id=agent.agent_id,
                        agent_name=agent.name,
                        status=agent.status,
                        avatar_emoji=agent.avatar_emoji,
                        model=agent.model or "unknown",
                        limit_5h=limit_5h,
                        limit_week=limit_week,
                        task_id=task.task_id if task else None,
                        task_title=task.title if task else None,
                    )
                )
            async with transaction(self._stores.conn):
                await self._stores.snapshot_store.add_snapshots(snapshots)
                pruned = await self._stores.snapshot_store.prune_before(
                    polled_at - SNAPSHOT_RETENTION
                )
        except Exception as e:
            log.warning("agent_snapshots_failed", error=str(e), exc_info=True)
            return
        log.debug("agent_snapshots_recorded", count=len(snapshots), pruned=pruned)

    async def list_snapshots(self, hours: int = DEFAULT_SNAPSHOT_HOURS) -> list[dict[str, Any]]:
        """最近 hours 小时（1-168）的快照，按轮询时间分组"""
        hours = max(1, min(hours, MAX_SNAPSHOT_HOURS))
        cutoff = datetime.now(UTC) - timedelta(hours=hours)
        groups: dict[str, list[dict[str, Any]]] = {}
        for snapshot in await self._stores.snapshot_store.list_since(cutoff):
            data = snapshot.model_dump(mode="json", exclude={"snapshot_id"})
            groups.setdefault(data["snapshot_time"], []).append(data)
        return [{"time": time, "agents": agents} for time, agents in groups.items()]
