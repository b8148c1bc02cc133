"""事务一致性测试 -- 块内异常时实体与事件都不写入"""

from datetime import UTC, datetime

import pytest
from mission_control.core.models import Event, EventType
from mission_control.core.store import transaction
from ulid import ULID


class TestTransaction:
    async def test_rollback_on_error(self, store_group, make_task):
        task = make_task()
        event = Event(
            event_id=str(ULID()),
            type=EventType.TASK_CREATED,
            task_id=task.task_id,
            message="New task: 测试任务",
            created_at=datetime.now(UTC),
        )

        with pytest.raises(RuntimeError):
            async with transaction(store_group.conn):
                await store_group.task_store.create_task(task)
                await store_group.event_store.append_event(event)
                raise RuntimeError("boom")

        assert await store_group.task_store.get_task(task.task_id) is None
        assert await store_group.event_store.list_events(task_id=task.task_id) == []

    async def test_commit_on_success(self, store_group, make_task):
        task = make_task()
        async with transaction(store_group.conn):
            await store_group.task_store.create_task(task)

        assert await store_group.task_store.get_task(task.task_id) is not None
