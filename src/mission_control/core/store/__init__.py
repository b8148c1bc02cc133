"""Mission Control Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from .activity_store import SqliteActivityStore
from .agent_store import SqliteAgentStore
from .app_store import SqliteAppStore
from .event_store import SqliteEventStore
from .planning_store import SqlitePlanningStore
from .session_store import SqliteSessionStore
from .snapshot_store import SqliteSnapshotStore
from .sqlite_init import init_db
from .task_store import SqliteTaskStore
from .transaction import transaction


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.task_store = SqliteTaskStore(conn)
        self.agent_store = SqliteAgentStore(conn)
        self.session_store = SqliteSessionStore(conn)
        self.event_store = SqliteEventStore(conn)
        self.activity_store = SqliteActivityStore(conn)
        self.planning_store = SqlitePlanningStore(conn)
        self.app_store = SqliteAppStore(conn)
        self.snapshot_store = SqliteSnapshotStore(conn)


async def create_store_group(db_path: str | Path) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(str(db_path))
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteAgentStore",
    "SqliteSessionStore",
    "SqliteEventStore",
    "SqliteActivityStore",
    "SqlitePlanningStore",
    "SqliteAppStore",
    "SqliteSnapshotStore",
    "init_db",
    "transaction",
]
