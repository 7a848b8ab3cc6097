from fastapi import APIRouter, Depends, Response, status
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..security import current_active_user
from ..schemas.exam_session_schema import (
    SessionRead, ActiveSession, ResponsePayload, SaveResult, SubmitResult, HistoryItem,
)
from ..services import session_service, response_store

router = APIRouter(tags=["Exam Sessions"])


@router.post("/exams/{exam_id}/sessions", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def start_exam(exam_id: int, response: Response, user=Depends(current_active_user),
                     session: AsyncSession = Depends(get_async_session)):
    # 201 for a new attempt, 200 when the caller's running attempt is handed back
    exam_session, created = await session_service.open_session(session, exam_id, user)
    if not created:
        response.status_code = status.HTTP_200_OK
    return exam_session


@router.get("/sessions/history", response_model=List[HistoryItem])
async def get_user_history(user=Depends(current_active_user), session: AsyncSession = Depends(get_async_session)):
    return await session_service.get_user_history(session, user)


@router.get("/sessions/{session_id}", response_model=ActiveSession)
async def get_active(session_id: int, user=Depends(current_active_user), session: AsyncSession = Depends(get_async_session)):
    return await session_service.get_active_session(session, session_id, user)


@router.put("/sessions/{session_id}/responses", response_model=SaveResult)
async def save_response(session_id: int, payload: ResponsePayload, user=Depends(current_active_user),
                        session: AsyncSession = Depends(get_async_session)):
    return await response_store.save_response(session, session_id, payload, user)


@router.post("/sessions/{session_id}/submit", response_model=SubmitResult)
async def submit_exam(session_id: int, user=Depends(current_active_user), session: AsyncSession = Depends(get_async_session)):
    return await session_service.submit_session(session, session_id, user)
