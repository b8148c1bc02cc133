"""EventStore SQLite 实现

事件表 append-only：只允许插入；删除仅发生在 Task / Agent 级联清理中。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import EventType
from ..models.event import Event


class SqliteEventStore:
    """EventStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_event(self, event: Event) -> None:
        """追加事件（append-only）

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            """
            INSERT INTO events (event_id, type, agent_id, task_id, message, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.type.value,
                event.agent_id,
                event.task_id,
                event.message,
                json.dumps(event.metadata, ensure_ascii=False),
                event.created_at.isoformat(),
            ),
        )

    async def list_events(
        self,
        limit: int = 50,
        task_id: str | None = None,
        agent_id: str | None = None,
        event_type: str | None = None,
        since: str | None = None,
    ) -> list[Event]:
        """查询事件流，按时间倒序"""
        clauses: list[str] = []
        params: list = []
        if task_id is not None:
            clauses.append("task_id = ?")
            params.append(task_id)
        if agent_id is not None:
            clauses.append("agent_id = ?")
            params.append(agent_id)
        if event_type is not None:
            clauses.append("type = ?")
            params.append(event_type)
        if since is not None:
            clauses.append("created_at > ?")
            params.append(since)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = await self._conn.execute(
            f"SELECT * FROM events {where} ORDER BY created_at DESC, event_id DESC LIMIT ?",
            (*params, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def get_events_for_task(self, task_id: str) -> list[Event]:
        """查询指定任务的所有事件，按时间正序"""
        cursor = await self._conn.execute(
            "SELECT * FROM events WHERE task_id = ? ORDER BY created_at ASC, event_id ASC",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    async def delete_events_for_task(self, task_id: str) -> None:
        await self._conn.execute("DELETE FROM events WHERE task_id = ?", (task_id,))

    async def delete_events_for_agent(self, agent_id: str) -> None:
        await self._conn.execute("DELETE FROM events WHERE agent_id = ?", (agent_id,))

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> Event:
        return Event(
            event_id=row["event_id"],
            type=EventType(row["type"]),
            agent_id=row["agent_id"],
            task_id=row["task_id"],
            message=row["message"],
            metadata=json.loads(row["metadata"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
