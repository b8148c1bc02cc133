"""AgentStore SQLite 实现"""

from datetime import UTC, datetime
from typing import Any

import aiosqlite

from ..models.agent import Agent
from ..models.enums import AgentStatus

# 允许通过 update_agent 修改的列
_UPDATABLE_COLUMNS = {
    "name",
    "role",
    "description",
    "avatar_emoji",
    "status",
    "is_master",
    "workspace_id",
    "soul_md",
    "openclaw_agent_id",
    "model",
    "provider_account_id",
    "limit_5h",
    "limit_week",
    "last_poll_at",
}


class SqliteAgentStore:
    """AgentStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_agent(self, agent: Agent) -> None:
        await self._conn.execute(
            """
            INSERT INTO agents (agent_id, name, role, description, avatar_emoji, status,
                                is_master, workspace_id, soul_md, openclaw_agent_id, model,
                                provider_account_id, limit_5h, limit_week, last_poll_at,
                                created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                agent.agent_id,
                agent.name,
                agent.role,
                agent.description,
                agent.avatar_emoji,
                agent.status.value,
                int(agent.is_master),
                agent.workspace_id,
                agent.soul_md,
                agent.openclaw_agent_id,
                agent.model,
                agent.provider_account_id,
                agent.limit_5h,
                agent.limit_week,
                agent.last_poll_at.isoformat() if agent.last_poll_at else None,
                agent.created_at.isoformat(),
                agent.updated_at.isoformat(),
            ),
        )

    async def get_agent(self, agent_id: str) -> Agent | None:
        cursor = await self._conn.execute(
            "SELECT * FROM agents WHERE agent_id = ?",
            (agent_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_agent(row) if row else None

    async def get_agent_by_name(self, name: str) -> Agent | None:
        cursor = await self._conn.execute(
            "SELECT * FROM agents WHERE name = ? ORDER BY created_at ASC LIMIT 1",
            (name,),
        )
        row = await cursor.fetchone()
        return self._row_to_agent(row) if row else None

    async def list_agents(self, workspace_id: str | None = None) -> list[Agent]:
        """查询 Agent 列表：master 在前，其余按名称排序"""
        if workspace_id:
            cursor = await self._conn.execute(
                "SELECT * FROM agents WHERE workspace_id = ? ORDER BY is_master DESC, name ASC",
                (workspace_id,),
            )
        else:
            cursor = await self._conn.execute(
                "SELECT * FROM agents ORDER BY is_master DESC, name ASC"
            )
        rows = await cursor.fetchall()
        return [self._row_to_agent(row) for row in rows]

    async def update_agent(self, agent_id: str, **fields: Any) -> None:
        """更新指定列，updated_at 自动刷新"""
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown agent columns: {sorted(unknown)}")
        if not fields:
            return

        values: list[Any] = []
        for key, value in fields.items():
            if isinstance(value, AgentStatus):
                value = value.value
            elif isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, bool):
                value = int(value)
            values.append(value)

        assignments = ", ".join(f"{key} = ?" for key in fields)
        await self._conn.execute(
            f"UPDATE agents SET {assignments}, updated_at = ? WHERE agent_id = ?",
            (*values, datetime.now(UTC).isoformat(), agent_id),
        )

    async def delete_agent(self, agent_id: str) -> None:
        await self._conn.execute("DELETE FROM agents WHERE agent_id = ?", (agent_id,))

    @staticmethod
    def _row_to_agent(row: aiosqlite.Row) -> Agent:
        return Agent(
            agent_id=row["agent_id"],
            name=row["name"],
            role=row["role"],
            description=row["description"],
            avatar_emoji=row["avatar_emoji"],
            status=AgentStatus(row["status"]),
            is_master=bool(row["is_master"]),
            workspace_id=row["workspace_id"],
            soul_md=row["soul_md"],
            openclaw_agent_id=row["openclaw_agent_id"],
            model=row["model"],
            provider_account_id=row["provider_account_id"],
            limit_5h=row["limit_5h"],
            limit_week=row["limit_week"],
            last_poll_at=(
                datetime.fromisoformat(row["last_poll_at"]) if row["last_poll_at"] else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
