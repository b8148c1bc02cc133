"""TaskStore SQLite 实现

写入通过 version 做乐观并发校验：save_task 只在 version 未变化时生效，
否则抛出 TaskVersionConflictError，由调用方决定重读重试或上报 409。
此处方法不自动提交事务，需由调用方管理。
"""

import json
from collections.abc import Iterable
from datetime import UTC, datetime

import aiosqlite

from ..errors import TaskVersionConflictError
from ..models.enums import TaskStatus
from ..models.task import PlanningMessage, Task


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, title, description, status, priority,
                               assigned_agent_id, created_by_agent_id, workspace_id,
                               app_id, due_date, planning_session_key, planning_messages,
                               planning_complete, planning_spec, planning_agents,
                               version, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.title,
                task.description,
                task.status.value,
                task.priority.value,
                task.assigned_agent_id,
                task.created_by_agent_id,
                task.workspace_id,
                task.app_id,
                task.due_date,
                task.planning_session_key,
                self._dump_messages(task.planning_messages),
                int(task.planning_complete),
                self._dump_optional(task.planning_spec),
                self._dump_optional(task.planning_agents),
                task.version,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(
        self,
        statuses: Iterable[str] | None = None,
        exclude_statuses: Iterable[str] | None = None,
        workspace_id: str | None = None,
        assigned_agent_id: str | None = None,
        app_id: str | None = None,
    ) -> list[Task]:
        """按条件查询任务列表，按 created_at 倒序"""
        where, params = self._build_filter(
            statuses, exclude_statuses, workspace_id, assigned_agent_id, app_id
        )
        cursor = await self._conn.execute(
            f"SELECT * FROM tasks {where} ORDER BY created_at DESC",
            params,
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def count_tasks_for_agent(
        self,
        agent_id: str,
        statuses: Iterable[str],
    ) -> int:
        """统计分配给 Agent 且处于指定状态的任务数"""
        where, params = self._build_filter(statuses, None, None, agent_id, None)
        cursor = await self._conn.execute(f"SELECT COUNT(*) FROM tasks {where}", params)
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_latest_task_for_agent(
        self,
        agent_id: str,
        statuses: Iterable[str],
    ) -> Task | None:
        """查询 Agent 最近更新的、处于指定状态的任务"""
        where, params = self._build_filter(statuses, None, None, agent_id, None)
        cursor = await self._conn.execute(
            f"SELECT * FROM tasks {where} ORDER BY updated_at DESC, task_id DESC LIMIT 1",
            params,
        )
        row = await cursor.fetchone()
        return self._row_to_task(row) if row else None

    async def save_task(self, task: Task) -> Task:
        """按 task.version 做条件写入，返回 version+1 后的任务

        Raises:
            TaskVersionConflictError: 记录已被其他写入修改
        """
        now = datetime.now(UTC)
        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET title = ?, description = ?, status = ?, priority = ?,
                assigned_agent_id = ?, created_by_agent_id = ?, workspace_id = ?,
                app_id = ?, due_date = ?, planning_session_key = ?,
                planning_messages = ?, planning_complete = ?, planning_spec = ?,
                planning_agents = ?, version = version + 1, updated_at = ?
            WHERE task_id = ? AND version = ?
            """,
            (
                task.title,
                task.description,
                task.status.value,
                task.priority.value,
                task.assigned_agent_id,
                task.created_by_agent_id,
                task.workspace_id,
                task.app_id,
                task.due_date,
                task.planning_session_key,
                self._dump_messages(task.planning_messages),
                int(task.planning_complete),
                self._dump_optional(task.planning_spec),
                self._dump_optional(task.planning_agents),
                now.isoformat(),
                task.task_id,
                task.version,
            ),
        )
        if cursor.rowcount == 0:
            raise TaskVersionConflictError(task.task_id, task.version)
        return task.model_copy(update={"version": task.version + 1, "updated_at": now})

    async def clear_agent_references(self, agent_id: str) -> None:
        """Agent 删除时清空任务上的 assignee / creator 引用"""
        now = datetime.now(UTC).isoformat()
        await self._conn.execute(
            """
            UPDATE tasks SET assigned_agent_id = NULL, version = version + 1, updated_at = ?
            WHERE assigned_agent_id = ?
            """,
            (now, agent_id),
        )
        await self._conn.execute(
            """
            UPDATE tasks SET created_by_agent_id = NULL, version = version + 1, updated_at = ?
            WHERE created_by_agent_id = ?
            """,
            (now, agent_id),
        )

    async def delete_task(self, task_id: str) -> None:
        await self._conn.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))

    @staticmethod
    def _build_filter(
        statuses: Iterable[str] | None,
        exclude_statuses: Iterable[str] | None,
        workspace_id: str | None,
        assigned_agent_id: str | None,
        app_id: str | None,
    ) -> tuple[str, list]:
        clauses: list[str] = []
        params: list = []
        if statuses is not None:
            values = [str(s) for s in statuses]
            if not values:
                return "WHERE 0", []
            clauses.append(f"status IN ({_placeholders(values)})")
            params.extend(values)
        if exclude_statuses:
            values = [str(s) for s in exclude_statuses]
            clauses.append(f"status NOT IN ({_placeholders(values)})")
            params.extend(values)
        if workspace_id is not None:
            clauses.append("workspace_id = ?")
            params.append(workspace_id)
        if assigned_agent_id is not None:
            clauses.append("assigned_agent_id = ?")
            params.append(assigned_agent_id)
        if app_id is not None:
            clauses.append("app_id = ?")
            params.append(app_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    @staticmethod
    def _dump_messages(messages: list[PlanningMessage]) -> str:
        return json.dumps([m.model_dump(mode="json") for m in messages], ensure_ascii=False)

    @staticmethod
    def _dump_optional(value) -> str | None:
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False)

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row["task_id"],
            title=row["title"],
            description=row["description"],
            status=TaskStatus(row["status"]),
            priority=row["priority"],
            assigned_agent_id=row["assigned_agent_id"],
            created_by_agent_id=row["created_by_agent_id"],
            workspace_id=row["workspace_id"],
            app_id=row["app_id"],
            due_date=row["due_date"],
            planning_session_key=row["planning_session_key"],
            planning_messages=[
                PlanningMessage(**m) for m in json.loads(row["planning_messages"])
            ],
            planning_complete=bool(row["planning_complete"]),
            planning_spec=json.loads(row["planning_spec"]) if row["planning_spec"] else None,
            planning_agents=(
                json.loads(row["planning_agents"]) if row["planning_agents"] else None
            ),
            version=row["version"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
