"""PlanningStore SQLite 实现 -- 审批路径的问题与锁定规格"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import PlanningCategory, QuestionType
from ..models.planning import PlanningQuestion, PlanningSpec


class SqlitePlanningStore:
    """planning_questions + planning_specs 两张表"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def add_question(self, question: PlanningQuestion) -> None:
        await self._conn.execute(
            """
            INSERT INTO planning_questions (question_id, task_id, category, question,
                                            question_type, options, answer, answered_at,
                                            sort_order)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                question.question_id,
                question.task_id,
                question.category.value,
                question.question,
                question.question_type.value,
                json.dumps(question.options, ensure_ascii=False),
                question.answer,
                question.answered_at.isoformat() if question.answered_at else None,
                question.sort_order,
            ),
        )

    async def list_questions(self, task_id: str) -> list[PlanningQuestion]:
        cursor = await self._conn.execute(
            """
            SELECT * FROM planning_questions WHERE task_id = ?
            ORDER BY sort_order ASC, question_id ASC
            """,
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_question(row) for row in rows]

    async def get_question(self, task_id: str, question_id: str) -> PlanningQuestion | None:
        cursor = await self._conn.execute(
            "SELECT * FROM planning_questions WHERE task_id = ? AND question_id = ?",
            (task_id, question_id),
        )
        row = await cursor.fetchone()
        return self._row_to_question(row) if row else None

    async def answer_question(self, question_id: str, answer: str, answered_at: datetime) -> None:
        await self._conn.execute(
            "UPDATE planning_questions SET answer = ?, answered_at = ? WHERE question_id = ?",
            (answer, answered_at.isoformat(), question_id),
        )

    async def get_spec(self, task_id: str) -> PlanningSpec | None:
        cursor = await self._conn.execute(
            "SELECT * FROM planning_specs WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return PlanningSpec(
            spec_id=row["spec_id"],
            task_id=row["task_id"],
            spec_markdown=row["spec_markdown"],
            locked_at=datetime.fromisoformat(row["locked_at"]),
            locked_by=row["locked_by"],
        )

    async def create_spec(self, spec: PlanningSpec) -> None:
        """写入锁定规格；task_id 唯一约束保证只锁定一次"""
        await self._conn.execute(
            """
            INSERT INTO planning_specs (spec_id, task_id, spec_markdown, locked_at, locked_by)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                spec.spec_id,
                spec.task_id,
                spec.spec_markdown,
                spec.locked_at.isoformat(),
                spec.locked_by,
            ),
        )

    async def delete_for_task(self, task_id: str) -> None:
        await self._conn.execute("DELETE FROM planning_questions WHERE task_id = ?", (task_id,))
        await self._conn.execute("DELETE FROM planning_specs WHERE task_id = ?", (task_id,))

    @staticmethod
    def _row_to_question(row: aiosqlite.Row) -> PlanningQuestion:
        return PlanningQuestion(
            question_id=row["question_id"],
            task_id=row["task_id"],
            category=PlanningCategory(row["category"]),
            question=row["question"],
            question_type=QuestionType(row["question_type"]),
            options=json.loads(row["options"]),
            answer=row["answer"],
            answered_at=(
                datetime.fromisoformat(row["answered_at"]) if row["answered_at"] else None
            ),
            sort_order=row["sort_order"],
        )
