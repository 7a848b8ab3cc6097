from fastapi import APIRouter, Depends, status
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..dependencies import current_instructor
from ..schemas.exam_schema import ExamCreate, ExamRead, ExamSummary, QuestionCreate, QuestionRead, AssignPayload, AssignResult
from ..security import current_active_user
from ..services import catalog_service

router = APIRouter(prefix="/exams", tags=["Exams"])


@router.get("/available", response_model=List[ExamSummary])
async def list_available_exams(user=Depends(current_active_user), session: AsyncSession = Depends(get_async_session)):
    # exams assigned to the caller whose availability window is open
    return await catalog_service.list_available_exams(session, user)


@router.post("/", response_model=ExamSummary, status_code=status.HTTP_201_CREATED)
async def create_exam(payload: ExamCreate, user=Depends(current_instructor), session: AsyncSession = Depends(get_async_session)):
    return await catalog_service.create_exam(session, payload, user)


@router.get("/{exam_id}", response_model=ExamRead)
async def get_exam(exam_id: int, user=Depends(current_instructor), session: AsyncSession = Depends(get_async_session)):
    return await catalog_service.get_exam_for_creator(session, exam_id, user)


@router.post("/{exam_id}/questions", response_model=QuestionRead, status_code=status.HTTP_201_CREATED)
async def add_question(exam_id: int, payload: QuestionCreate, user=Depends(current_instructor),
                       session: AsyncSession = Depends(get_async_session)):
    return await catalog_service.add_question(session, exam_id, payload, user)


@router.post("/{exam_id}/finalize", response_model=ExamSummary)
async def finalize_exam(exam_id: int, user=Depends(current_instructor), session: AsyncSession = Depends(get_async_session)):
    return await catalog_service.finalize_exam(session, exam_id, user)


@router.post("/{exam_id}/assign", response_model=AssignResult)
async def assign_exam(exam_id: int, payload: AssignPayload, user=Depends(current_instructor),
                      session: AsyncSession = Depends(get_async_session)):
    return await catalog_service.assign_users(session, exam_id, payload.user_ids, user)
