"""core 测试配置 -- 实体构造辅助"""

from datetime import UTC, datetime

import pytest
from mission_control.core.models import Agent, Task
from ulid import ULID


@pytest.fixture
def make_task():
    def _make(**overrides) -> Task:
        now = datetime.now(UTC)
        fields = {"task_id": str(ULID()), "title": "测试任务", "created_at": now, "updated_at": now}
        fields.update(overrides)
        return Task(**fields)

    return _make


@pytest.fixture
def make_agent():
    def _make(**overrides) -> Agent:
        now = datetime.now(UTC)
        fields = {
            "agent_id": str(ULID()),
            "name": "Builder",
            "role": "Developer",
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return Agent(**fields)

    return _make
