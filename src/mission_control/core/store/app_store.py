"""AppStore SQLite 实现"""

from datetime import UTC, datetime

import aiosqlite

from ..models.app import App


class SqliteAppStore:
    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_app(self, app: App) -> None:
        await self._conn.execute(
            """
            INSERT INTO apps (app_id, name, description, path, port, build_status,
                              progress_completed, progress_total, workspace_id,
                              created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                app.app_id,
                app.name,
                app.description,
                app.path,
                app.port,
                app.build_status,
                app.progress_completed,
                app.progress_total,
                app.workspace_id,
                app.created_at.isoformat(),
                app.updated_at.isoformat(),
            ),
        )

    async def get_app(self, app_id: str) -> App | None:
        cursor = await self._conn.execute("SELECT * FROM apps WHERE app_id = ?", (app_id,))
        row = await cursor.fetchone()
        return self._row_to_app(row) if row else None

    async def list_apps(self, workspace_id: str | None = None) -> list[App]:
        if workspace_id:
            cursor = await self._conn.execute(
                "SELECT * FROM apps WHERE workspace_id = ? ORDER BY name ASC",
                (workspace_id,),
            )
        else:
            cursor = await self._conn.execute("SELECT * FROM apps ORDER BY name ASC")
        rows = await cursor.fetchall()
        return [self._row_to_app(row) for row in rows]

    async def update_progress(self, app_id: str, completed: int, total: int) -> None:
        await self._conn.execute(
            """
            UPDATE apps SET progress_completed = ?, progress_total = ?, updated_at = ?
            WHERE app_id = ?
            """,
            (completed, total, datetime.now(UTC).isoformat(), app_id),
        )

    @staticmethod
    def _row_to_app(row: aiosqlite.Row) -> App:
        return App(
            app_id=row["app_id"],
            name=row["name"],
            description=row["description"],
            path=row["path"],
            port=row["port"],
            build_status=row["build_status"],
            progress_completed=row["progress_completed"],
            progress_total=row["progress_total"],
            workspace_id=row["workspace_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
