"""PlanningQuestion / PlanningSpec Domain Model -- 审批路径"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import PlanningCategory, QuestionType


class PlanningQuestion(BaseModel):
    question_id: str
    task_id: str
    category: PlanningCategory
    question: str
    question_type: QuestionType = QuestionType.TEXT
    options: list[str] = Field(default_factory=list)
    answer: str | None = None
    answered_at: datetime | None = None
    sort_order: int = 0


class PlanningSpec(BaseModel):
    """锁定的规格文档，每个 Task 至多一份"""

    spec_id: str
    task_id: str
    spec_markdown: str
    locked_at: datetime
    locked_by: str | None = None
