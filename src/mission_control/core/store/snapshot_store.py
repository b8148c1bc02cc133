"""AgentSnapshotStore SQLite 实现

快照不引用 agents / tasks 外键：删除 Agent 或 Task 后历史快照仍保留，
只按时间清理。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import AgentStatus
from ..models.snapshot import AgentSnapshot


class SqliteSnapshotStore:
    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def add_snapshots(self, snapshots: list[AgentSnapshot]) -> None:
        await self._conn.executemany(
            """
            INSERT INTO agent_snapshots (snapshot_id, snapshot_time, agent_id, agent_name,
                                         status, avatar_emoji, model, limit_5h, limit_week,
                                         task_id, task_title)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    s.snapshot_id,
                    s.snapshot_time.isoformat(),
                    s.agent_id,
                    s.agent_name,
                    s.status,
                    s.avatar_emoji,
                    s.model,
                    s.limit_5h,
                    s.limit_week,
                    s.task_id,
                    s.task_title,
                )
                for s in snapshots
            ],
        )

    async def list_since(self, cutoff: datetime) -> list[AgentSnapshot]:
        """cutoff 之后的快照，按时间正序、同一时间按 Agent 名称排序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM agent_snapshots
            WHERE snapshot_time >= ?
            ORDER BY snapshot_time ASC, agent_name ASC
            """,
            (cutoff.isoformat(),),
        )
        rows = await cursor.fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    async def prune_before(self, cutoff: datetime) -> int:
        cursor = await self._conn.execute(
            "DELETE FROM agent_snapshots WHERE snapshot_time < ?", (cutoff.isoformat(),)
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_snapshot(row: aiosqlite.Row) -> AgentSnapshot:
        return AgentSnapshot(
            snapshot_id=row["snapshot_id"],
            snapshot_time=datetime.fromisoformat(row["snapshot_time"]),
            agent_id=row["agent_id"],
            agent_name=row["agent_name"],
            status=AgentStatus(row["status"]),
            avatar_emoji=row["avatar_emoji"],
            model=row["model"],
            limit_5h=row["limit_5h"],
            limit_week=row["limit_week"],
            task_id=row["task_id"],
            task_title=row["task_title"],
        )
