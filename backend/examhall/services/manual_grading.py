import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..exceptions import NotFoundError, ForbiddenError, ConflictError, ValidationError
from ..models.exam_model import Question
from ..models.exam_session_model import ExamSession, ExamSessionStatus, Response
from ..models.user_model import User
from ..permissions import is_creator
from .grading_service import sum_points, all_graded
from .timing import utcnow

logger = logging.getLogger(__name__)


async def grade_response(session: AsyncSession, response_id: int, points: int, feedback: Optional[str],
                         grader: User, now: Optional[datetime] = None) -> dict:
    """
    Record a grader's score for one response and roll the session up.

    The session total is recomputed from every non-null response score. The
    session becomes ``graded`` once no response is left ungraded, otherwise it
    stays ``submitted``.
    """
    now = now or utcnow()
    res = await session.execute(
        select(Response)
        .where(Response.id == response_id)
        .options(selectinload(Response.question), selectinload(Response.session).selectinload(ExamSession.exam))
        .execution_options(populate_existing=True)
    )
    response = res.scalar_one_or_none()
    if response is None:
        raise NotFoundError("Response not found")

    if not is_creator(grader, response.session.exam):
        raise ForbiddenError("Only the creator can grade this exam")

    session_id = response.session_id
    question_points = response.question.points
    grader_id = grader.id

    # a no-op write takes the session row's write lock on every backend
    # (SQLite ignores FOR UPDATE) and re-checks the status under it
    touched = await session.execute(
        update(ExamSession)
        .where(ExamSession.id == session_id, ExamSession.status != ExamSessionStatus.IN_PROGRESS)
        .values(total_points=ExamSession.total_points)
        .execution_options(synchronize_session=False)
    )
    if touched.rowcount != 1:
        await session.rollback()
        raise ConflictError("Cannot grade a session that has not been submitted")

    if points < 0 or points > question_points:
        await session.rollback()
        raise ValidationError(f"points must be between 0 and {question_points}")

    locked = await session.execute(
        select(ExamSession)
        .where(ExamSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    exam_session = locked.scalar_one()

    response.points = points
    response.feedback = feedback
    response.graded_by_id = grader_id
    response.graded_at = now
    await session.flush()

    all_res = await session.execute(
        select(Response)
        .where(Response.session_id == exam_session.id)
        .execution_options(populate_existing=True)
    )
    responses = all_res.scalars().all()

    total = sum_points(responses)
    exam_session.total_points = total
    exam_session.transition_to(ExamSessionStatus.GRADED if all_graded(responses) else ExamSessionStatus.SUBMITTED)
    await session.commit()

    logger.info("Response %s graded by %s, session %s now %s with %d points",
                response_id, str(grader_id), session_id, exam_session.status.value, total)
    return {"success": True, "total_points": total, "status": exam_session.status}


async def get_session_for_grading(session: AsyncSession, session_id: int, grader: User) -> ExamSession:
    res = await session.execute(
        select(ExamSession)
        .where(ExamSession.id == session_id)
        .options(
            selectinload(ExamSession.exam),
            selectinload(ExamSession.user),
            selectinload(ExamSession.responses).selectinload(Response.question).selectinload(Question.options),
            selectinload(ExamSession.responses).selectinload(Response.selected_option),
        )
        .execution_options(populate_existing=True)
    )
    exam_session = res.scalar_one_or_none()
    if exam_session is None:
        raise NotFoundError("Session not found")
    if not is_creator(grader, exam_session.exam):
        raise ForbiddenError("Only the creator can grade this exam")
    return exam_session
