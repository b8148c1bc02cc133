"""SpecApproval -- 问卷式审批路径

每个分类一道固定问题；全部作答后锁定规格文档，写回 Task 描述并移入 inbox。
规格只能锁定一次（planning_specs.task_id 唯一）。
"""

from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from mission_control.core.errors import InvalidRequestError, NotFoundError
from mission_control.core.models import (
    EventType,
    NotificationType,
    PlanningCategory,
    PlanningQuestion,
    PlanningSpec,
    QuestionType,
    Task,
    TaskActivity,
    TaskStatus,
)
from mission_control.core.models.payloads import ApprovePlanning, QuestionAnswer
from mission_control.core.store import StoreGroup, transaction
from ulid import ULID

from .audit import new_event, task_view
from .notifier import Notifier
from .task_writer import TaskWriter

log = structlog.get_logger()

CATEGORY_LABELS: dict[PlanningCategory, str] = {
    PlanningCategory.GOAL: "🎯 Goal & Success Criteria",
    PlanningCategory.AUDIENCE: "👥 Target Audience",
    PlanningCategory.SCOPE: "📋 Scope",
    PlanningCategory.DESIGN: "🎨 Design & Visual",
    PlanningCategory.CONTENT: "📝 Content",
    PlanningCategory.TECHNICAL: "⚙️ Technical Requirements",
    PlanningCategory.TIMELINE: "📅 Timeline",
    PlanningCategory.CONSTRAINTS: "⚠️ Constraints",
}

# (分类, 问题, 题型, 选项)
QUESTION_BATTERY: tuple[tuple[PlanningCategory, str, QuestionType, list[str]], ...] = (
    (
        PlanningCategory.GOAL,
        "What does success look like for this task?",
        QuestionType.TEXT,
        [],
    ),
    (
        PlanningCategory.AUDIENCE,
        "Who is the primary audience?",
        QuestionType.MULTIPLE_CHOICE,
        ["Internal team", "Existing customers", "New users", "Developers", "Other"],
    ),
    (
        PlanningCategory.SCOPE,
        "What is in scope, and what is explicitly out of scope?",
        QuestionType.TEXT,
        [],
    ),
    (
        PlanningCategory.DESIGN,
        "Is there an existing design or visual style to follow?",
        QuestionType.YES_NO,
        ["Yes", "No"],
    ),
    (
        PlanningCategory.CONTENT,
        "What content or data must be included?",
        QuestionType.TEXT,
        [],
    ),
    (
        PlanningCategory.TECHNICAL,
        "Which technical stack or integrations are required?",
        QuestionType.TEXT,
        [],
    ),
    (
        PlanningCategory.TIMELINE,
        "When does this need to be delivered?",
        QuestionType.MULTIPLE_CHOICE,
        ["Today", "This week", "This month", "No deadline"],
    ),
    (
        PlanningCategory.CONSTRAINTS,
        "Are there any constraints (budget, compliance, dependencies)?",
        QuestionType.TEXT,
        [],
    ),
)


def render_spec_markdown(
    task: Task,
    questions: list[PlanningQuestion],
    locked_at: datetime,
) -> str:
    """渲染锁定的规格文档，分类按固定顺序输出"""
    lines = [f"# {task.title}", "", "**Status:** SPEC LOCKED ✅", ""]
    if task.description:
        lines += ["## Original Request", task.description, ""]

    for category in PlanningCategory:
        in_category = [q for q in questions if q.category == category]
        if not in_category:
            continue
        lines += [f"## {CATEGORY_LABELS[category]}", ""]
        for q in in_category:
            if q.answer:
                lines += [f"**{q.question}**", f"> {q.answer}", ""]

    lines += ["---", f"*Spec locked at {locked_at.isoformat()}*"]
    return "\n".join(lines)


class SpecApproval:
    def __init__(
        self,
        store_group: StoreGroup,
        notifier: Notifier,
        writer: TaskWriter,
    ) -> None:
        self._stores = store_group
        self._notifier = notifier
        self._writer = writer

    async def _get_task(self, task_id: str) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found", code="TASK_NOT_FOUND")
        return task

    async def seed_questions(self, task_id: str) -> list[PlanningQuestion]:
        """写入固定问题集；已有问题的分类跳过"""
        await self._get_task(task_id)
        existing = {q.category for q in await self._stores.planning_store.list_questions(task_id)}

        async with transaction(self._stores.conn):
            for order, (category, text, question_type, options) in enumerate(QUESTION_BATTERY):
                if category in existing:
                    continue
                await self._stores.planning_store.add_question(
                    PlanningQuestion(
                        question_id=str(ULID()),
                        task_id=task_id,
                        category=category,
                        question=text,
                        question_type=question_type,
                        options=options,
                        sort_order=order,
                    )
                )
        return await self._stores.planning_store.list_questions(task_id)

    async def list_questions(self, task_id: str) -> list[PlanningQuestion]:
        await self._get_task(task_id)
        return await self._stores.planning_store.list_questions(task_id)

    async def answer_question(
        self,
        task_id: str,
        question_id: str,
        payload: QuestionAnswer,
    ) -> PlanningQuestion:
        if not payload.answer or not payload.answer.strip():
            raise InvalidRequestError("Answer is required", code="ANSWER_REQUIRED")
        if await self._stores.planning_store.get_spec(task_id) is not None:
            raise InvalidRequestError("Spec already locked", code="SPEC_LOCKED")
        question = await self._stores.planning_store.get_question(task_id, question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} not found", code="QUESTION_NOT_FOUND")

        async with transaction(self._stores.conn):
            await self._stores.planning_store.answer_question(
                question_id, payload.answer.strip(), datetime.now(UTC)
            )
        return await self._stores.planning_store.get_question(task_id, question_id)

    async def approve(self, task_id: str, payload: ApprovePlanning) -> dict[str, Any]:
        """锁定规格

        Raises:
            NotFoundError: 任务不存在
            InvalidRequestError: 已锁定 / 存在未作答问题
        """
        task = await self._get_task(task_id)
        if await self._stores.planning_store.get_spec(task_id) is not None:
            raise InvalidRequestError("Spec already locked", code="SPEC_LOCKED")

        questions = await self._stores.planning_store.list_questions(task_id)
        unanswered = sum(1 for q in questions if not q.answer)
        if unanswered:
            raise InvalidRequestError(
                f"All questions must be answered before locking ({unanswered} unanswered)",
                code="QUESTIONS_UNANSWERED",
            )

        locked_at = datetime.now(UTC)
        markdown = render_spec_markdown(task, questions, locked_at)
        spec = PlanningSpec(
            spec_id=str(ULID()),
            task_id=task_id,
            spec_markdown=markdown,
            locked_at=locked_at,
            locked_by=payload.locked_by,
        )
        try:
            async with transaction(self._stores.conn):
                await self._stores.planning_store.create_spec(spec)
        except aiosqlite.IntegrityError as e:
            # 并发锁定：planning_specs.task_id 唯一约束拒绝了后写入者
            raise InvalidRequestError("Spec already locked", code="SPEC_LOCKED") from e

        def lock(current: Task) -> Task:
            return current.model_copy(update={"description": markdown, "status": TaskStatus.INBOX})

        def status_event(old: Task, new: Task) -> list:
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

        _, saved = await self._writer.apply(task_id, lock, events=status_event)
        async with transaction(self._stores.conn):
            await self._stores.activity_store.append_activity(
                TaskActivity(
                    activity_id=str(ULID()),
                    task_id=task_id,
                    activity_type="status_changed",
                    message="Planning complete - spec locked and moved to inbox",
                    created_at=locked_at,
                )
            )

        log.info("planning_spec_locked", task_id=task_id, questions=len(questions))
        await self._notifier.publish(
            NotificationType.TASK_UPDATED, task_view(saved), task_id=task_id
        )
        return {
            "success": True,
            "spec": spec.model_dump(mode="json"),
            "specMarkdown": markdown,
        }
