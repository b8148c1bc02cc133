"""Notifier 单元测试 -- topic 路由与满队列剔除"""

from mission_control.core.models import NotificationType
from mission_control.gateway.services.notifier import ALL_TOPIC, Notifier, task_topic


class TestNotifier:
    async def test_task_topic_routing(self):
        notifier = Notifier()
        everything = await notifier.subscribe()
        only_a = await notifier.subscribe(task_topic("a"))

        await notifier.publish(NotificationType.TASK_UPDATED, {"n": 1}, task_id="a")
        await notifier.publish(NotificationType.TASK_UPDATED, {"n": 2}, task_id="b")
        await notifier.publish(NotificationType.AGENT_UPDATED, {"n": 3})

        assert everything.qsize() == 3
        assert only_a.qsize() == 1
        assert only_a.get_nowait().payload == {"n": 1}

    async def test_full_queue_dropped(self):
        notifier = Notifier(queue_maxsize=1)
        slow = await notifier.subscribe()

        await notifier.publish(NotificationType.TASK_UPDATED, {})
        assert notifier.subscriber_count(ALL_TOPIC) == 1

        await notifier.publish(NotificationType.TASK_UPDATED, {})
        assert notifier.subscriber_count(ALL_TOPIC) == 0
        assert slow.qsize() == 1

    async def test_unsubscribe(self):
        notifier = Notifier()
        queue = await notifier.subscribe(task_topic("a"))
        await notifier.unsubscribe(task_topic("a"), queue)
        assert notifier.subscriber_count(task_topic("a")) == 0
