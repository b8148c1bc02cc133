"""App Domain Model -- Task 可关联的本地项目"""

from datetime import datetime

from pydantic import BaseModel, Field


class App(BaseModel):
    app_id: str
    name: str
    description: str | None = None
    path: str = Field(description="项目根目录")
    port: int | None = Field(default=None, description="本地开发端口")
    build_status: str = "unknown"
    progress_completed: int = 0
    progress_total: int = 0
    workspace_id: str = "default"
    created_at: datetime
    updated_at: datetime
