from fastapi import APIRouter, Depends
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..dependencies import current_instructor
from ..schemas.exam_session_schema import GradingSession, ExamSessionListItem
from ..schemas.grading_schema import GradePayload, GradeResult
from ..services import manual_grading, session_service

router = APIRouter(prefix="/grading", tags=["Grading"])


@router.get("/exams/{exam_id}/sessions", response_model=List[ExamSessionListItem])
async def list_exam_sessions(exam_id: int, grader=Depends(current_instructor),
                             session: AsyncSession = Depends(get_async_session)):
    return await session_service.list_sessions_for_exam(session, exam_id, grader)


@router.get("/sessions/{session_id}", response_model=GradingSession)
async def get_session_for_grading(session_id: int, grader=Depends(current_instructor),
                                  session: AsyncSession = Depends(get_async_session)):
    return await manual_grading.get_session_for_grading(session, session_id, grader)


@router.post("/responses/{response_id}", response_model=GradeResult)
async def grade_response(response_id: int, payload: GradePayload, grader=Depends(current_instructor),
                         session: AsyncSession = Depends(get_async_session)):
    """
    Score one response. The session total is recomputed and the session is
    marked graded once every response has points.
    """
    return await manual_grading.grade_response(session, response_id, payload.points, payload.feedback, grader)
