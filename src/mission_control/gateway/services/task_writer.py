"""TaskWriter -- 带版本校验的 Task 读-改-写

所有修改 Task 的编排路径（PATCH、派发、额度清扫、完成回调、Planning）都经由
apply()：读取最新记录 -> 计算新值 -> 以 version 为条件写入，并在同一事务内写入
审计事件。版本冲突时重读重试，超过上限抛出 ConflictError。
"""

from collections.abc import Callable

import structlog
from mission_control.core.errors import ConflictError, NotFoundError, TaskVersionConflictError
from mission_control.core.models import Event, Task
from mission_control.core.store import StoreGroup, transaction

log = structlog.get_logger()

# (旧值) -> 新值；返回 None 表示无需写入
Mutator = Callable[[Task], Task | None]
# (旧值, 已保存的新值) -> 需同事务写入的事件
EventBuilder = Callable[[Task, Task], list[Event]]


class TaskWriter:
    _max_version_retries = 3

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def apply(
        self,
        task_id: str,
        mutator: Mutator,
        events: EventBuilder | None = None,
        expected_version: int | None = None,
    ) -> tuple[Task, Task]:
        """以乐观并发方式修改 Task

        Args:
            task_id: 任务 ID
            mutator: 基于最新记录计算新记录；返回 None 则不写入
            events: 基于新旧记录构建需同事务写入的事件
            expected_version: 调用方持有的版本号；提供时不一致立即冲突，不重试

        Returns:
            (写入前记录, 写入后记录)；未写入时两者相同

        Raises:
            NotFoundError: 任务不存在
            TaskVersionConflictError: expected_version 不匹配
            ConflictError: 重试后仍冲突
        """
        for attempt in range(1, self._max_version_retries + 1):
            current = await self._stores.task_store.get_task(task_id)
            if current is None:
                raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")
            if expected_version is not None and current.version != expected_version:
                raise TaskVersionConflictError(task_id, expected_version)

            updated = mutator(current)
            if updated is None:
                return current, current

            try:
                async with transaction(self._stores.conn):
                    saved = await self._stores.task_store.save_task(updated)
                    if events is not None:
                        for event in events(current, saved):
                            await self._stores.event_store.append_event(event)
            except TaskVersionConflictError:
                if expected_version is not None:
                    raise
                log.warning("task_version_conflict_retry", task_id=task_id, attempt=attempt)
                continue
            return current, saved

        raise ConflictError(
            f"Task {task_id} was modified concurrently; retry the request",
            code="TASK_VERSION_CONFLICT",
        )
