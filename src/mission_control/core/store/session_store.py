"""SessionStore SQLite 实现 -- openclaw_sessions 表

"同一 Agent 至多一条 active persistent 记录" 由部分唯一索引保证，
并发创建时后写入者会收到 aiosqlite.IntegrityError。
"""

from datetime import UTC, datetime

import aiosqlite

from ..models.enums import SessionStatus, SessionType
from ..models.session import SessionCorrelation


class SqliteSessionStore:
    """SessionStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_session(self, session: SessionCorrelation) -> None:
        await self._conn.execute(
            """
            INSERT INTO openclaw_sessions (session_id, agent_id, task_id, openclaw_session_id,
                                           channel, status, session_type, created_at, ended_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session.session_id,
                session.agent_id,
                session.task_id,
                session.openclaw_session_id,
                session.channel,
                session.status.value,
                session.session_type.value,
                session.created_at.isoformat(),
                session.ended_at.isoformat() if session.ended_at else None,
            ),
        )

    async def get_active_session(
        self,
        agent_id: str,
        session_type: SessionType = SessionType.PERSISTENT,
    ) -> SessionCorrelation | None:
        """查询 Agent 当前 active 的会话"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM openclaw_sessions
            WHERE agent_id = ? AND status = 'active' AND session_type = ?
            ORDER BY created_at DESC LIMIT 1
            """,
            (agent_id, session_type.value),
        )
        row = await cursor.fetchone()
        return self._row_to_session(row) if row else None

    async def find_active_by_openclaw_id(
        self, openclaw_session_id: str
    ) -> SessionCorrelation | None:
        """按外部 session 名查询 active 会话（完成回调使用）"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM openclaw_sessions
            WHERE openclaw_session_id = ? AND status = 'active'
            ORDER BY created_at DESC LIMIT 1
            """,
            (openclaw_session_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_session(row) if row else None

    async def list_sessions_for_task(
        self,
        task_id: str,
        session_type: SessionType | None = None,
    ) -> list[SessionCorrelation]:
        if session_type is None:
            cursor = await self._conn.execute(
                "SELECT * FROM openclaw_sessions WHERE task_id = ? ORDER BY created_at DESC",
                (task_id,),
            )
        else:
            cursor = await self._conn.execute(
                """
                SELECT * FROM openclaw_sessions
                WHERE task_id = ? AND session_type = ? ORDER BY created_at DESC
                """,
                (task_id, session_type.value),
            )
        rows = await cursor.fetchall()
        return [self._row_to_session(row) for row in rows]

    async def deactivate_session(self, session_id: str) -> None:
        await self._conn.execute(
            """
            UPDATE openclaw_sessions SET status = ?, ended_at = ?
            WHERE session_id = ?
            """,
            (SessionStatus.INACTIVE.value, datetime.now(UTC).isoformat(), session_id),
        )

    async def delete_sessions_for_task(self, task_id: str) -> None:
        await self._conn.execute("DELETE FROM openclaw_sessions WHERE task_id = ?", (task_id,))

    async def delete_sessions_for_agent(self, agent_id: str) -> None:
        await self._conn.execute(
            "DELETE FROM openclaw_sessions WHERE agent_id = ?",
            (agent_id,),
        )

    @staticmethod
    def _row_to_session(row: aiosqlite.Row) -> SessionCorrelation:
        return SessionCorrelation(
            session_id=row["session_id"],
            agent_id=row["agent_id"],
            task_id=row["task_id"],
            openclaw_session_id=row["openclaw_session_id"],
            channel=row["channel"],
            status=SessionStatus(row["status"]),
            session_type=SessionType(row["session_type"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            ended_at=datetime.fromisoformat(row["ended_at"]) if row["ended_at"] else None,
        )
