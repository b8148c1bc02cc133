"""PlanningEngine -- 与运行时 Planning Agent 的多轮对话

流程:
1. start: 发送多选题开场提示，成功后写入 session key（只设置一次）
2. 轮询 chat.history 等待可解析的 assistant 回复（问题或完成载荷）
3. answer: 发送用户选择，只接受会话记录中该条发送之后的回复
4. 完成载荷 {status: "complete", spec, agents, execution_plan}：
   持久化规格与 Agent 方案，Task -> inbox，创建 Agent 并分配给第一个，后台派发
wait=False 时等待交给后台 watcher（每个 Task 至多一个），结果通过 planning_updated 推送。
"""

import asyncio
import json
import re
import time
from datetime import UTC, datetime
from typing import Any

import structlog
from mission_control.core.config import (
    get_planning_poll_attempts,
    get_planning_poll_interval_s,
)
from mission_control.core.errors import InvalidRequestError, NotFoundError
from mission_control.core.models import (
    Agent,
    AgentStatus,
    Event,
    EventType,
    NotificationType,
    PlanningMessage,
    Task,
    TaskStatus,
)
from mission_control.core.models.payloads import PlanningAnswer
from mission_control.core.store import StoreGroup, transaction
from mission_control.openclaw import OpenClawError, OpenClawGatewayClient, TranscriptMessage
from ulid import ULID

from .audit import agent_view, new_event, task_view
from .background import BackgroundRunner
from .dispatcher import Dispatcher
from .notifier import Notifier
from .task_writer import TaskWriter
from .upstream import gateway_errors

log = structlog.get_logger()

PLANNING_SESSION_PREFIX = "agent:devops:planning:"

# 每次读取的会话记录条数
HISTORY_LIMIT = 50

WAITING_NOTE = "Planning started, waiting for response. Poll GET endpoint for updates."
ANSWER_WAITING_NOTE = "Answer submitted, waiting for response."

START_PROMPT = """PLANNING REQUEST

Task Title: {title}
Task Description: {description}

You are starting a planning session for this task. Read PLANNING.md for your protocol.

Generate your FIRST question to understand what the user needs. Remember:
- Questions must be multiple choice
- Include an "Other" option
- Be specific to THIS task, not generic

Respond with ONLY valid JSON in this format:
{{
  "question": "Your question here?",
  "options": [
    {{"id": "A", "label": "First option"}},
    {{"id": "B", "label": "Second option"}},
    {{"id": "C", "label": "Third option"}},
    {{"id": "other", "label": "Other"}}
  ]
}}"""

ANSWER_PROMPT = """User's answer: {answer}

Based on this answer and the conversation so far, either:
1. Ask your next question (if you need more information)
2. Complete the planning (if you have enough information)

For another question, respond with JSON:
{{
  "question": "Your next question?",
  "options": [
    {{"id": "A", "label": "Option A"}},
    {{"id": "B", "label": "Option B"}},
    {{"id": "other", "label": "Other"}}
  ]
}}

If planning is complete, respond with JSON:
{{
  "status": "complete",
  "spec": {{
    "title": "Task title",
    "summary": "What this task delivers",
    "deliverables": ["..."],
    "success_criteria": ["..."],
    "constraints": {{}}
  }},
  "agents": [
    {{
      "name": "Agent name",
      "role": "Agent role",
      "avatar_emoji": "🤖",
      "soul_md": "Personality and working style",
      "instructions": "What this agent should do"
    }}
  ],
  "execution_plan": {{
    "approach": "How the work will be done",
    "steps": ["..."]
  }}
}}"""

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def extract_json(text: str) -> dict[str, Any] | None:
    """从 Agent 回复中提取 JSON 对象

    依次尝试：整段文本、```json 代码块、第一个 "{" 到最后一个 "}"。
    """
    parsed = _loads_object(text.strip())
    if parsed is not None:
        return parsed

    match = _FENCED_BLOCK.search(text)
    if match:
        parsed = _loads_object(match.group(1).strip())
        if parsed is not None:
            return parsed

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return _loads_object(text[start : end + 1])
    return None


def is_planning_reply(parsed: dict[str, Any] | None) -> bool:
    return parsed is not None and ("question" in parsed or "status" in parsed)


def replies_after_prompt(history: list[TranscriptMessage], prompt: str) -> list[str]:
    """会话记录中最后一条包含 prompt 的 user 消息之后的 assistant 回复

    以发送内容定位而不是按回复数量计数：会话记录超过 HISTORY_LIMIT 后
    窗口会滑动，数量不再增长。prompt 尚未出现在记录中时视为还没有回复。
    """
    marker = prompt.strip()
    for index in range(len(history) - 1, -1, -1):
        message = history[index]
        if message.role == "user" and marker in message.text:
            return [
                m.text for m in history[index + 1 :] if m.role == "assistant" and m.text.strip()
            ]
    return []


def planning_session_key(task_id: str) -> str:
    return f"{PLANNING_SESSION_PREFIX}{task_id}"


def watcher_key(task_id: str) -> str:
    return f"planning:{task_id}"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _message(role: str, content: str) -> PlanningMessage:
    return PlanningMessage(role=role, content=content, timestamp=datetime.now(UTC))


def _dump_messages(task: Task) -> list[dict[str, Any]]:
    return [m.model_dump(mode="json") for m in task.planning_messages]


def _last_assistant(task: Task) -> PlanningMessage | None:
    for message in reversed(task.planning_messages):
        if message.role == "assistant":
            return message
    return None


def _pending_prompt(task: Task) -> str | None:
    """最后一条消息是 user 时返回当时发给运行时的原文，否则 None"""
    messages = task.planning_messages
    if not messages or messages[-1].role != "user":
        return None
    if len(messages) == 1:
        return messages[0].content
    return ANSWER_PROMPT.format(answer=messages[-1].content)


class PlanningEngine:
    """Planning 会话编排

    轮询节奏默认取 MC_PLANNING_POLL_ATTEMPTS / MC_PLANNING_POLL_INTERVAL_MS，
    测试中可通过构造参数覆盖。
    """

    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        gateway: OpenClawGatewayClient,
        runner: BackgroundRunner,
        writer: TaskWriter,
        dispatcher: Dispatcher,
        poll_attempts: int | None = None,
        poll_interval_s: float | None = None,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._gateway = gateway
        self._runner = runner
        self._writer = writer
        self._dispatcher = dispatcher
        self._poll_attempts = (
            poll_attempts if poll_attempts is not None else get_planning_poll_attempts()
        )
        self._poll_interval_s = (
            poll_interval_s if poll_interval_s is not None else get_planning_poll_interval_s()
        )

    async def _get_task(self, task_id: str) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")
        return task

    # -- start --

    async def start(self, task_id: str, wait: bool = True) -> dict[str, Any]:
        """开始 Planning

        先发送开场提示，发送成功后才写入 session key；key 写入后不再变更。

        Raises:
            NotFoundError: 任务不存在
            InvalidRequestError: 已开始过 Planning（原 session key 保留）
            UpstreamUnavailableError: 运行时不可达（503），Task 不做任何修改
        """
        task = await self._get_task(task_id)
        if task.planning_session_key:
            raise InvalidRequestError(
                f"Planning already started (sessionKey: {task.planning_session_key})",
                code="PLANNING_ALREADY_STARTED",
            )

        session_key = planning_session_key(task_id)
        prompt = START_PROMPT.format(
            title=task.title,
            description=task.description or "No description provided",
        )
        with gateway_errors("planning start", task_id=task_id):
            await self._gateway.send_chat(
                session_key, prompt, f"planning-start-{task_id}-{_now_ms()}"
            )

        _, claimed = await self._claim_session(task_id, session_key, prompt)

        log.info("planning_started", task_id=task_id, session_key=session_key)
        await self._notifier.publish(
            NotificationType.TASK_UPDATED, task_view(claimed), task_id=task_id
        )
        base = {"success": True, "sessionKey": session_key}
        return {**base, **await self._after_send(task_id, prompt, wait, WAITING_NOTE)}

    async def _claim_session(
        self, task_id: str, session_key: str, prompt: str
    ) -> tuple[Task, Task]:
        """以版本写入占用 session key；并发的第二个 start 会在此失败"""
        planning_prompt = _message("user", prompt)

        def claim(current: Task) -> Task:
            if current.planning_session_key:
                raise InvalidRequestError(
                    f"Planning already started (sessionKey: {current.planning_session_key})",
                    code="PLANNING_ALREADY_STARTED",
                )
            return current.model_copy(
                update={
                    "planning_session_key": session_key,
                    "planning_messages": [planning_prompt],
                    "status": TaskStatus.PLANNING,
                }
            )

        def status_event(old: Task, new: Task) -> list[Event]:
            if old.status == new.status:
                return []
            return [
                new_event(
                    EventType.TASK_STATUS_CHANGED,
                    f'Task "{new.title}" moved to {new.status.value}',
                    task_id=new.task_id,
                    metadata={"from_status": old.status, "to_status": new.status},
                )
            ]

        return await self._writer.apply(task_id, claim, events=status_event)

    # -- answer --

    async def answer(
        self,
        task_id: str,
        payload: PlanningAnswer,
        wait: bool = True,
    ) -> dict[str, Any]:
        """提交一轮回答

        Raises:
            InvalidRequestError: 缺少 answer / Planning 未开始 / 已完成
            NotFoundError: 任务不存在
            UpstreamUnavailableError: 运行时不可达（503）
        """
        if not payload.answer:
            raise InvalidRequestError("Answer is required", code="ANSWER_REQUIRED")
        task = await self._get_task(task_id)
        session_key = task.planning_session_key
        if not session_key:
            raise InvalidRequestError("Planning not started", code="PLANNING_NOT_STARTED")
        if task.planning_complete:
            raise InvalidRequestError("Planning already complete", code="PLANNING_COMPLETE")

        answer_text = (
            f"Other: {payload.other_text}"
            if payload.answer == "other" and payload.other_text
            else payload.answer
        )
        prompt = ANSWER_PROMPT.format(answer=answer_text)

        with gateway_errors("planning answer", task_id=task_id):
            await self._gateway.send_chat(
                session_key, prompt, f"planning-answer-{task_id}-{_now_ms()}"
            )

        user_message = _message("user", answer_text)
        await self._writer.apply(
            task_id,
            lambda current: current.model_copy(
                update={"planning_messages": [*current.planning_messages, user_message]}
            ),
        )
        log.info("planning_answer_sent", task_id=task_id)
        return await self._after_send(task_id, prompt, wait, ANSWER_WAITING_NOTE)

    # -- 等待与回复处理 --

    async def _after_send(
        self,
        task_id: str,
        prompt: str,
        wait: bool,
        note: str,
    ) -> dict[str, Any]:
        if not wait:
            self._watch(task_id, prompt)
            task = await self._get_task(task_id)
            return {"accepted": True, "waiting": True, "messages": _dump_messages(task)}

        reply = await self._await_reply(planning_session_key(task_id), prompt)
        if reply is None:
            task = await self._get_task(task_id)
            return {"waiting": True, "note": note, "messages": _dump_messages(task)}
        result = await self._ingest_reply(task_id, reply)
        await self._notifier.publish(
            NotificationType.PLANNING_UPDATED, {"task_id": task_id, **result}, task_id=task_id
        )
        return result

    def _watch(self, task_id: str, prompt: str) -> None:
        self._runner.spawn(
            f"planning-watch:{task_id}",
            lambda: self._watch_reply(task_id, prompt),
            key=watcher_key(task_id),
        )

    async def _watch_reply(self, task_id: str, prompt: str) -> None:
        reply = await self._await_reply(planning_session_key(task_id), prompt)
        if reply is None:
            payload = {"task_id": task_id, "waiting": True, "timed_out": True}
        else:
            payload = {"task_id": task_id, **await self._ingest_reply(task_id, reply)}
        await self._notifier.publish(NotificationType.PLANNING_UPDATED, payload, task_id=task_id)

    async def _replies_after(self, session_key: str, prompt: str) -> list[str]:
        history = await self._gateway.chat_history(session_key, limit=HISTORY_LIMIT)
        return replies_after_prompt(history, prompt)

    async def _await_reply(self, session_key: str, prompt: str) -> str | None:
        """轮询 prompt 之后的 assistant 回复；单次轮询失败不终止等待"""
        for attempt in range(1, self._poll_attempts + 1):
            await asyncio.sleep(self._poll_interval_s)
            try:
                replies = await self._replies_after(session_key, prompt)
            except OpenClawError as e:
                log.warning(
                    "planning_poll_failed",
                    session_key=session_key,
                    attempt=attempt,
                    error=str(e),
                )
                continue
            for text in reversed(replies):
                if is_planning_reply(extract_json(text)):
                    return text

        log.info("planning_reply_timeout", session_key=session_key, attempts=self._poll_attempts)
        return None

    async def _ingest_reply(self, task_id: str, reply: str) -> dict[str, Any]:
        """持久化一条 assistant 回复，完成载荷则进入收尾"""
        parsed = extract_json(reply)
        if parsed is not None and parsed.get("status") == "complete":
            return await self._complete(task_id, reply, parsed)

        assistant_message = _message("assistant", reply)

        def append(current: Task) -> Task | None:
            messages = current.planning_messages
            if messages and messages[-1].role == "assistant" and messages[-1].content == reply:
                return None
            return current.model_copy(
                update={"planning_messages": [*current.planning_messages, assistant_message]}
            )

        _, task = await self._writer.apply(task_id, append)
        result: dict[str, Any] = {"complete": False, "messages": _dump_messages(task)}
        if parsed is not None and "question" in parsed:
            result["currentQuestion"] = parsed
        else:
            result["rawResponse"] = reply
        return result

    async def _complete(
        self,
        task_id: str,
        reply: str,
        parsed: dict[str, Any],
    ) -> dict[str, Any]:
        task = await self._get_task(task_id)
        if task.planning_complete:
            return self._completion_result(task, parsed, auto_dispatched=False)

        spec = parsed.get("spec") if isinstance(parsed.get("spec"), dict) else None
        proposals = [
            a for a in parsed.get("agents") or [] if isinstance(a, dict) and a.get("name")
        ]
        agents = await self._create_agents(task, proposals)
        first = agents[0] if agents else None
        assistant_message = _message("assistant", reply)

        def finish(current: Task) -> Task | None:
            if current.planning_complete:
                return None
            update: dict[str, Any] = {
                "planning_messages": [*current.planning_messages, assistant_message],
                "planning_complete": True,
                "planning_spec": spec,
                "planning_agents": proposals,
                "status": TaskStatus.INBOX,
            }
            if first is not None:
                update["assigned_agent_id"] = first.agent_id
            return current.model_copy(update=update)

        def completion_events(old: Task, new: Task) -> list[Event]:
            events = [
                new_event(
                    EventType.TASK_STATUS_CHANGED,
                    f'Planning complete for "{new.title}"',
                    task_id=new.task_id,
                    metadata={"from_status": old.status, "to_status": new.status},
                )
            ]
            if first is not None:
                events.append(
                    new_event(
                        EventType.TASK_ASSIGNED,
                        f'"{new.title}" assigned to {first.name}',
                        agent_id=first.agent_id,
                        task_id=new.task_id,
                        metadata={"previous_agent_id": old.assigned_agent_id},
                    )
                )
            return events

        old, saved = await self._writer.apply(task_id, finish, events=completion_events)
        if saved is old:
            return self._completion_result(saved, parsed, auto_dispatched=False)

        log.info(
            "planning_completed",
            task_id=task_id,
            agents_created=len(agents),
            assigned_agent_id=first.agent_id if first else None,
        )
        for agent in agents:
            await self._notifier.publish(NotificationType.AGENT_UPDATED, agent_view(agent))
        await self._notifier.publish(
            NotificationType.TASK_UPDATED, task_view(saved, first), task_id=task_id
        )

        if first is not None:
            self._runner.spawn(
                f"dispatch:{task_id}",
                lambda: self._dispatcher.dispatch(task_id),
            )
        return self._completion_result(saved, parsed, auto_dispatched=first is not None)

    async def _create_agents(self, task: Task, proposals: list[dict[str, Any]]) -> list[Agent]:
        now = datetime.now(UTC)
        agents = [
            Agent(
                agent_id=str(ULID()),
                name=str(p["name"]),
                role=str(p.get("role") or "Agent"),
                description=p.get("instructions") or "",
                avatar_emoji=p.get("avatar_emoji") or "🤖",
                status=AgentStatus.STANDBY,
                workspace_id=task.workspace_id,
                soul_md=p.get("soul_md") or "",
                openclaw_agent_id=p.get("openclaw_agent_id") or None,
                created_at=now,
                updated_at=now,
            )
            for p in proposals
        ]
        if not agents:
            return agents
        async with transaction(self._stores.conn):
            for agent in agents:
                await self._stores.agent_store.create_agent(agent)
                await self._stores.event_store.append_event(
                    new_event(
                        EventType.AGENT_JOINED,
                        f"{agent.name} joined the team",
                        agent_id=agent.agent_id,
                        task_id=task.task_id,
                        metadata={"source": "planning"},
                    )
                )
        return agents

    @staticmethod
    def _completion_result(
        task: Task,
        parsed: dict[str, Any],
        auto_dispatched: bool,
    ) -> dict[str, Any]:
        return {
            "complete": True,
            "spec": task.planning_spec,
            "agents": task.planning_agents or [],
            "executionPlan": parsed.get("execution_plan"),
            "messages": _dump_messages(task),
            "autoDispatched": auto_dispatched,
        }

    # -- status --

    async def status(self, task_id: str) -> dict[str, Any]:
        """当前 Planning 状态；最后一条是未获回复的 user 消息时尝试从会话记录中恢复"""
        task = await self._get_task(task_id)
        waiting = self._runner.is_running(watcher_key(task_id))

        pending_prompt = _pending_prompt(task)
        if (
            task.planning_session_key
            and not task.planning_complete
            and not waiting
            and pending_prompt is not None
        ):
            recovered = await self._recover_reply(task.planning_session_key, pending_prompt)
            if recovered is not None:
                await self._ingest_reply(task_id, recovered)
                task = await self._get_task(task_id)

        current_question = None
        last = _last_assistant(task)
        if last is not None and not task.planning_complete:
            parsed = extract_json(last.content)
            if parsed is not None and "question" in parsed:
                current_question = parsed

        return {
            "taskId": task_id,
            "sessionKey": task.planning_session_key,
            "messages": _dump_messages(task),
            "currentQuestion": current_question,
            "isComplete": task.planning_complete,
            "spec": task.planning_spec,
            "agents": task.planning_agents,
            "isStarted": task.planning_session_key is not None,
            "waiting": waiting,
        }

    async def _recover_reply(self, session_key: str, prompt: str) -> str | None:
        try:
            replies = await self._replies_after(session_key, prompt)
        except OpenClawError as e:
            log.warning("planning_recovery_failed", session_key=session_key, error=str(e))
            return None
        for text in reversed(replies):
            if is_planning_reply(extract_json(text)):
                log.info("planning_reply_recovered", session_key=session_key)
                return text
        return None
