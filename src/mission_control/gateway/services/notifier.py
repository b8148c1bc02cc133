"""Notifier -- 内存中的状态变更广播器

每个订阅者持有一个 asyncio.Queue，按 topic 订阅：
- "all": 全部通知
- "task:{task_id}": 仅与该任务相关的通知
推送是 at-most-once 的：队列已满的订阅者被直接移除，客户端可随时重新拉取状态。
"""

import asyncio
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any

from mission_control.core.models import NotificationType
from pydantic import BaseModel, Field

ALL_TOPIC = "all"


def task_topic(task_id: str) -> str:
    return f"task:{task_id}"


class Notification(BaseModel):
    """推送给看板观察者的一条通知"""

    type: NotificationType
    payload: dict[str, Any] = Field(default_factory=dict)
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Notifier:
    """基于 asyncio.Queue 的发布/订阅"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # topic -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, topic: str = ALL_TOPIC) -> asyncio.Queue:
        """订阅指定 topic，返回接收通知的队列"""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[topic].add(queue)
        return queue

    async def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        self._subscribers[topic].discard(queue)
        if not self._subscribers[topic]:
            del self._subscribers[topic]

    def subscriber_count(self, topic: str = ALL_TOPIC) -> int:
        return len(self._subscribers.get(topic, set()))

    async def publish(
        self,
        notification_type: NotificationType,
        payload: dict[str, Any],
        task_id: str | None = None,
    ) -> Notification:
        """广播通知到 "all" 以及（如有）对应任务的 topic"""
        notification = Notification(type=notification_type, payload=payload)
        self._broadcast(ALL_TOPIC, notification)
        if task_id:
            self._broadcast(task_topic(task_id), notification)
        return notification

    def _broadcast(self, topic: str, notification: Notification) -> None:
        dead_queues = []
        for queue in self._subscribers.get(topic, set()):
            try:
                queue.put_nowait(notification)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[topic].discard(q)
        if topic in self._subscribers and not self._subscribers[topic]:
            del self._subscribers[topic]
