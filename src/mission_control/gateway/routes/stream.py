"""SSE 通知流路由

GET /api/stream: 推送 Notifier 广播的状态变更；task_id 参数只订阅该任务相关通知。
推送是 at-most-once 的，客户端断线后应重新拉取状态。
"""

import asyncio
import json

from fastapi import APIRouter, Depends, Query, Request
from mission_control.core.config import SSE_HEARTBEAT_INTERVAL
from sse_starlette.sse import EventSourceResponse

from ..deps import get_notifier
from ..services.notifier import ALL_TOPIC, Notification, task_topic

router = APIRouter()


def _notification_to_sse(notification: Notification) -> dict:
    return {
        "event": notification.type.value,
        "data": json.dumps(notification.model_dump(mode="json"), ensure_ascii=False),
    }


@router.get("/api/stream")
async def stream_notifications(
    request: Request,
    task_id: str | None = Query(default=None, description="只接收该任务的通知"),
    notifier=Depends(get_notifier),
):
    topic = task_topic(task_id) if task_id else ALL_TOPIC

    async def event_generator():
        queue = await notifier.subscribe(topic)
        try:
            yield {"event": "connected", "data": json.dumps({"topic": topic})}
            while True:
                if await request.is_disconnected():
                    return
                try:
                    notification = await asyncio.wait_for(
                        queue.get(), timeout=SSE_HEARTBEAT_INTERVAL
                    )
                    yield _notification_to_sse(notification)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
        finally:
            await notifier.unsubscribe(topic, queue)

    return EventSourceResponse(event_generator())
