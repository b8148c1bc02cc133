"""事务封装

多表写入（实体 + 审计事件）在同一 SQLite 事务内提交，失败整体回滚。
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def transaction(conn: aiosqlite.Connection) -> AsyncIterator[aiosqlite.Connection]:
    """在 with 块结束时提交；块内抛出异常时回滚并继续抛出"""
    try:
        yield conn
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
