"""ActivityStore SQLite 实现 -- task_activities + task_deliverables 两张表"""

import json
from datetime import datetime

import aiosqlite

from ..models.activity import TaskActivity, TaskDeliverable
from ..models.enums import DeliverableType


class SqliteActivityStore:
    """任务活动记录与交付物的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def append_activity(self, activity: TaskActivity) -> None:
        await self._conn.execute(
            """
            INSERT INTO task_activities (activity_id, task_id, agent_id, activity_type,
                                         message, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                activity.activity_id,
                activity.task_id,
                activity.agent_id,
                activity.activity_type,
                activity.message,
                json.dumps(activity.metadata, ensure_ascii=False),
                activity.created_at.isoformat(),
            ),
        )

    async def list_activities(self, task_id: str) -> list[TaskActivity]:
        """查询任务活动，最新在前"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM task_activities WHERE task_id = ?
            ORDER BY created_at DESC, activity_id DESC
            """,
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [
            TaskActivity(
                activity_id=row["activity_id"],
                task_id=row["task_id"],
                agent_id=row["agent_id"],
                activity_type=row["activity_type"],
                message=row["message"],
                metadata=json.loads(row["metadata"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    async def add_deliverable(self, deliverable: TaskDeliverable) -> None:
        await self._conn.execute(
            """
            INSERT INTO task_deliverables (deliverable_id, task_id, deliverable_type, title,
                                           path, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                deliverable.deliverable_id,
                deliverable.task_id,
                deliverable.deliverable_type.value,
                deliverable.title,
                deliverable.path,
                deliverable.description,
                deliverable.created_at.isoformat(),
            ),
        )

    async def list_deliverables(self, task_id: str) -> list[TaskDeliverable]:
        cursor = await self._conn.execute(
            """
            SELECT * FROM task_deliverables WHERE task_id = ?
            ORDER BY created_at DESC, deliverable_id DESC
            """,
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [
            TaskDeliverable(
                deliverable_id=row["deliverable_id"],
                task_id=row["task_id"],
                deliverable_type=DeliverableType(row["deliverable_type"]),
                title=row["title"],
                path=row["path"],
                description=row["description"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    async def clear_agent_references(self, agent_id: str) -> None:
        await self._conn.execute(
            "UPDATE task_activities SET agent_id = NULL WHERE agent_id = ?",
            (agent_id,),
        )

    async def delete_for_task(self, task_id: str) -> None:
        """删除任务下的活动与交付物"""
        await self._conn.execute("DELETE FROM task_activities WHERE task_id = ?", (task_id,))
        await self._conn.execute("DELETE FROM task_deliverables WHERE task_id = ?", (task_id,))
