"""TaskStore 单元测试

测试内容：
1. 创建/查询往返，含 Planning 子记录
2. 每次写入 version +1
3. 过期 version 写入抛 TaskVersionConflictError
4. 状态筛选与 Agent 维度统计
"""

from datetime import UTC, datetime

import pytest
from mission_control.core.errors import TaskVersionConflictError
from mission_control.core.models import PlanningMessage, TaskStatus
from mission_control.core.store import transaction


class TestTaskStore:
    async def test_create_and_get_roundtrip(self, store_group, make_task):
        task = make_task(
            planning_session_key="agent:devops:planning:x",
            planning_messages=[
                PlanningMessage(role="user", content="你好", timestamp=datetime.now(UTC))
            ],
            planning_spec={"title": "规格"},
            planning_agents=[{"name": "Ada"}],
        )
        async with transaction(store_group.conn):
            await store_group.task_store.create_task(task)

        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded is not None
        assert loaded.title == "测试任务"
        assert loaded.planning_messages[0].content == "你好"
        assert loaded.planning_spec == {"title": "规格"}
        assert loaded.planning_agents == [{"name": "Ada"}]
        assert loaded.version == 1

    async def test_get_missing_returns_none(self, store_group):
        assert await store_group.task_store.get_task("missing") is None

    async def test_save_increments_version(self, store_group, make_task):
        task = make_task()
        async with transaction(store_group.conn):
            await store_group.task_store.create_task(task)

        async with transaction(store_group.conn):
            saved = await store_group.task_store.save_task(
                task.model_copy(update={"status": TaskStatus.ASSIGNED})
            )
        assert saved.version == 2

        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded.version == 2
        assert loaded.status == TaskStatus.ASSIGNED

    async def test_stale_version_conflicts(self, store_group, make_task):
        """基于旧版本的第二次写入被拒绝，第一次写入保留"""
        task = make_task()
        async with transaction(store_group.conn):
            await store_group.task_store.create_task(task)

        async with transaction(store_group.conn):
            await store_group.task_store.save_task(task.model_copy(update={"title": "A"}))

        with pytest.raises(TaskVersionConflictError):
            async with transaction(store_group.conn):
                await store_group.task_store.save_task(task.model_copy(update={"title": "B"}))

        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded.title == "A"
        assert loaded.version == 2

    async def test_status_filters_and_counts(self, store_group, make_task, make_agent):
        agent = make_agent()
        tasks = [
            make_task(status=TaskStatus.IN_PROGRESS, assigned_agent_id=agent.agent_id),
            make_task(status=TaskStatus.REVIEW, assigned_agent_id=agent.agent_id),
            make_task(status=TaskStatus.INBOX),
        ]
        async with transaction(store_group.conn):
            await store_group.agent_store.create_agent(agent)
            for t in tasks:
                await store_group.task_store.create_task(t)

        in_progress = await store_group.task_store.list_tasks(statuses=[TaskStatus.IN_PROGRESS])
        assert [t.task_id for t in in_progress] == [tasks[0].task_id]

        not_reviewed = await store_group.task_store.list_tasks(
            assigned_agent_id=agent.agent_id,
            exclude_statuses={TaskStatus.REVIEW, TaskStatus.DONE},
        )
        assert [t.task_id for t in not_reviewed] == [tasks[0].task_id]

        count = await store_group.task_store.count_tasks_for_agent(
            agent.agent_id, {TaskStatus.IN_PROGRESS}
        )
        assert count == 1

    async def test_clear_agent_references(self, store_group, make_task, make_agent):
        agent = make_agent()
        task = make_task(assigned_agent_id=agent.agent_id)
        async with transaction(store_group.conn):
            await store_group.agent_store.create_agent(agent)
            await store_group.task_store.create_task(task)

        async with transaction(store_group.conn):
            await store_group.task_store.clear_agent_references(agent.agent_id)

        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded.assigned_agent_id is None
        assert loaded.version == 2
