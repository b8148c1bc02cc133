"""Planning 路由

对话路径:
    POST /api/tasks/{task_id}/planning: 开始 Planning
    GET  /api/tasks/{task_id}/planning: 当前对话状态
    POST /api/tasks/{task_id}/planning/answer: 回答当前问题
    start / answer 支持 ?wait=false：立即返回 202，回复通过 SSE planning_updated 推送
问卷审批路径:
    POST /api/tasks/{task_id}/planning/questions: 写入固定问题集
    GET  /api/tasks/{task_id}/planning/questions
    POST /api/tasks/{task_id}/planning/questions/{question_id}/answer
    POST /api/tasks/{task_id}/planning/approve: 锁定规格
"""

from fastapi import APIRouter, Depends, Query
from mission_control.core.models.payloads import ApprovePlanning, PlanningAnswer, QuestionAnswer
from starlette.responses import JSONResponse

from ..deps import get_services

router = APIRouter()


def _planning_response(result: dict, wait: bool):
    if wait:
        return result
    return JSONResponse(status_code=202, content=result)


@router.post("/api/tasks/{task_id}/planning")
async def start_planning(
    task_id: str,
    wait: bool = Query(default=True, description="false 时不等待 Agent 回复"),
    services=Depends(get_services),
):
    result = await services.planning.start(task_id, wait=wait)
    return _planning_response(result, wait)


@router.get("/api/tasks/{task_id}/planning")
async def get_planning(task_id: str, services=Depends(get_services)):
    return await services.planning.status(task_id)


@router.post("/api/tasks/{task_id}/planning/answer")
async def answer_planning(
    task_id: str,
    body: PlanningAnswer,
    wait: bool = Query(default=True, description="false 时不等待 Agent 回复"),
    services=Depends(get_services),
):
    result = await services.planning.answer(task_id, body, wait=wait)
    return _planning_response(result, wait)


@router.post("/api/tasks/{task_id}/planning/questions", status_code=201)
async def seed_questions(task_id: str, services=Depends(get_services)):
    questions = await services.approval.seed_questions(task_id)
    return [q.model_dump(mode="json") for q in questions]


@router.get("/api/tasks/{task_id}/planning/questions")
async def list_questions(task_id: str, services=Depends(get_services)):
    questions = await services.approval.list_questions(task_id)
    return [q.model_dump(mode="json") for q in questions]


@router.post("/api/tasks/{task_id}/planning/questions/{question_id}/answer")
async def answer_question(
    task_id: str,
    question_id: str,
    body: QuestionAnswer,
    services=Depends(get_services),
):
    question = await services.approval.answer_question(task_id, question_id, body)
    return question.model_dump(mode="json")


@router.post("/api/tasks/{task_id}/planning/approve")
async def approve_planning(
    task_id: str,
    body: ApprovePlanning | None = None,
    services=Depends(get_services),
):
    """全部问题作答后锁定规格，任务移入 inbox"""
    return await services.approval.approve(task_id, body or ApprovePlanning())
