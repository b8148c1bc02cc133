"""BackgroundRunner -- 后台任务登记表

fire-and-forget 的派发、App 进度刷新、Planning 等待任务都经由此处创建：
- 持有 asyncio.Task 强引用，避免被 GC 提前回收
- 失败只记录日志，不向触发请求传播
- 带 key 的任务同一时刻只保留一个，新任务会取消旧任务
- 应用关闭时 shutdown() 取消全部未完成任务
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger()


class BackgroundRunner:
    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._keyed: dict[str, asyncio.Task] = {}

    def spawn(
        self,
        name: str,
        factory: Callable[[], Awaitable[object]],
        key: str | None = None,
    ) -> asyncio.Task:
        """创建后台任务

        Args:
            name: 任务名（用于日志）
            factory: 返回协程的无参可调用对象
            key: 互斥键；同 key 的旧任务会被取消
        """
        if key is not None:
            previous = self._keyed.pop(key, None)
            if previous is not None and not previous.done():
                previous.cancel()
                log.info("background_task_superseded", name=name, key=key)

        task = asyncio.create_task(self._guard(name, factory), name=name)
        self._tasks.add(task)
        if key is not None:
            self._keyed[key] = task
        task.add_done_callback(lambda t: self._forget(t, key))
        return task

    def is_running(self, key: str) -> bool:
        task = self._keyed.get(key)
        return task is not None and not task.done()

    def cancel(self, key: str) -> bool:
        task = self._keyed.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def join(self) -> None:
        """等待当前全部后台任务结束"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """取消全部未完成任务并等待其退出"""
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._keyed.clear()
        log.info("background_runner_stopped", cancelled=len(pending))

    async def _guard(self, name: str, factory: Callable[[], Awaitable[object]]) -> None:
        try:
            await factory()
        except asyncio.CancelledError:
            log.info("background_task_cancelled", name=name)
            raise
        except Exception as e:
            log.error(
                "background_task_failed",
                name=name,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _forget(self, task: asyncio.Task, key: str | None) -> None:
        self._tasks.discard(task)
        if key is not None and self._keyed.get(key) is task:
            del self._keyed[key]
