"""
Exam session lifecycle: start, view, submit.

A session moves in_progress -> submitted -> graded and never back. Each
mutation here reads, validates and writes inside the request's single
transaction and ends with one commit. The partial unique index on
``exam_sessions(user_id) WHERE status = 'IN_PROGRESS'`` backs the
one-attempt-per-user rule when two starts race.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import settings
from ..exceptions import NotFoundError, ForbiddenError, ConflictError
from ..models.exam_model import Exam, Question
from ..models.exam_session_model import ExamSession, ExamSessionStatus, Response
from ..models.user_model import User
from ..permissions import is_creator
from .catalog_service import get_exam_by_id, get_questions_for_exam, is_assigned
from .grading_service import grade_session_responses
from .timing import utcnow, deadline_for, remaining_seconds, is_expired, is_within_window

logger = logging.getLogger(__name__)


def _serialize_question(q: Question, reveal_answers: bool) -> dict:
    # is_correct stays hidden until the attempt is over
    return {
        "id": q.id,
        "question_text": q.question_text,
        "question_type": q.question_type,
        "points": q.points,
        "order_index": q.order_index,
        "options": [
            {
                "id": o.id,
                "option_text": o.option_text,
                "order_index": o.order_index,
                "is_correct": o.is_correct if reveal_answers else None,
            }
            for o in q.options
        ],
    }


async def _get_in_progress_for_user(session: AsyncSession, user_id, lock: bool = False) -> Optional[ExamSession]:
    stmt = select(ExamSession).where(
        ExamSession.user_id == user_id,
        ExamSession.status == ExamSessionStatus.IN_PROGRESS,
    ).execution_options(populate_existing=True)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    rows = res.scalars().all()
    if len(rows) > 1:
        logger.warning("Multiple in-progress ExamSession rows found for user_id=%s, using first row", str(user_id))
    return rows[0] if rows else None


async def load_owned_session(session: AsyncSession, session_id: int, user: User,
                             status: Optional[ExamSessionStatus] = None,
                             lock: bool = False) -> Optional[ExamSession]:
    """Fetch a session only if ``user`` owns it (and it has ``status`` when given)."""
    stmt = select(ExamSession).where(
        ExamSession.id == session_id,
        ExamSession.user_id == user.id,
    ).execution_options(populate_existing=True)
    if status is not None:
        stmt = stmt.where(ExamSession.status == status)
    if lock:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def finalize_submission(session: AsyncSession, exam_session: ExamSession, exam: Exam,
                              now: datetime) -> int:
    """
    Autograde, total and close an in-progress session, then commit.

    Only multiple-choice responses with a selected option get points here;
    everything else stays null for manual grading. Returns the total.

    The session is claimed with a conditional UPDATE before anything is
    graded, so of two concurrent submits only one matches the
    ``in_progress`` row; the other gets NotFound. This holds on SQLite too,
    where ``FOR UPDATE`` is ignored.
    """
    session_id = exam_session.id
    submitted_late = is_expired(
        exam_session.started_at, exam.time_limit, now, grace_seconds=settings.submit_grace_seconds
    )
    claimed = await session.execute(
        update(ExamSession)
        .where(ExamSession.id == session_id, ExamSession.status == ExamSessionStatus.IN_PROGRESS)
        .values(status=ExamSessionStatus.SUBMITTED, submitted_at=now, submitted_late=submitted_late)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        await session.rollback()
        logger.warning("Session %s was already closed by a concurrent request", session_id)
        raise NotFoundError("Active session not found")

    res = await session.execute(
        select(Response)
        .where(Response.session_id == session_id)
        .options(selectinload(Response.question), selectinload(Response.selected_option))
        .execution_options(populate_existing=True)
    )
    responses = res.scalars().all()
    total = grade_session_responses(responses)

    exam_session.transition_to(ExamSessionStatus.SUBMITTED)
    exam_session.submitted_at = now
    exam_session.total_points = total
    exam_session.submitted_late = submitted_late
    try:
        await session.commit()
    except IntegrityError:
        logger.exception("DB IntegrityError while submitting session %s", session_id)
        await session.rollback()
        raise

    if submitted_late:
        logger.warning("Session %s submitted after its deadline", session_id)
    logger.info("Session %s submitted with %d points", session_id, total)
    return total


async def expire_if_overdue(session: AsyncSession, exam_session: ExamSession, exam: Exam,
                            now: datetime) -> bool:
    """Submit an in-progress session whose deadline plus grace has passed."""
    if exam_session.status != ExamSessionStatus.IN_PROGRESS:
        return False
    if not is_expired(exam_session.started_at, exam.time_limit, now, grace_seconds=settings.submit_grace_seconds):
        return False
    session_id = exam_session.id
    logger.info("Session %s ran out of time, submitting", session_id)
    try:
        await finalize_submission(session, exam_session, exam, now)
    except NotFoundError:
        # a concurrent request closed it first; it is over either way
        logger.info("Session %s was closed concurrently while expiring", session_id)
    return True


async def enforce_deadline(session: AsyncSession, exam_session: ExamSession, exam: Exam, now: datetime) -> None:
    if await expire_if_overdue(session, exam_session, exam, now):
        raise ForbiddenError("Session time limit exceeded")


async def open_session(session: AsyncSession, exam_id: int, user: User,
                       now: Optional[datetime] = None) -> Tuple[ExamSession, bool]:
    """
    Start a new attempt or resume the caller's running one.

    Returns ``(exam_session, created)``; ``created`` is False when an
    existing in-progress attempt on the same exam is handed back.
    """
    now = now or utcnow()
    user_id = user.id

    exam = await get_exam_by_id(session, exam_id)
    if exam is None:
        raise NotFoundError("Exam not found")
    if not await is_assigned(session, user_id, exam_id):
        raise ForbiddenError("You are not assigned to this exam")

    existing = await _get_in_progress_for_user(session, user_id, lock=True)
    if existing is not None:
        existing_exam = exam if existing.exam_id == exam_id else await get_exam_by_id(session, existing.exam_id)
        if await expire_if_overdue(session, existing, existing_exam, now):
            existing = None
            # expiring may have rolled back and expired loaded rows
            exam = await get_exam_by_id(session, exam_id)

    if existing is not None:
        if existing.exam_id != exam_id:
            logger.warning("User %s tried to start exam %s while session %s is in progress",
                           str(user_id), exam_id, existing.id)
            raise ConflictError("You are already taking another exam")
        logger.info("Resuming session %s for user %s", existing.id, str(user_id))
        return existing, False

    if not is_within_window(exam.available_from, exam.available_to, now):
        raise ForbiddenError("Exam is not available at this time")

    new_session = ExamSession(
        exam_id=exam_id,
        user_id=user_id,
        status=ExamSessionStatus.IN_PROGRESS,
        started_at=now,
        submitted_late=False,
    )
    session.add(new_session)
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent start won the race for this user's single in-progress slot
        await session.rollback()
        winner = await _get_in_progress_for_user(session, user_id)
        if winner is None:
            raise
        if winner.exam_id != exam_id:
            raise ConflictError("You are already taking another exam")
        return winner, False

    await session.refresh(new_session)
    logger.info("Session %s started for user %s on exam %s", new_session.id, str(user_id), exam_id)
    return new_session, True


async def start_session(session: AsyncSession, exam_id: int, user: User,
                        now: Optional[datetime] = None) -> ExamSession:
    exam_session, _ = await open_session(session, exam_id, user, now)
    return exam_session


async def get_active_session(session: AsyncSession, session_id: int, user: User,
                             now: Optional[datetime] = None) -> dict:
    """
    Session view for its owner: the session, its exam, saved responses and
    the full ordered question list, plus the server-computed deadline.
    """
    now = now or utcnow()
    exam_session = await load_owned_session(session, session_id, user)
    if exam_session is None:
        raise NotFoundError("Session not found")

    exam = await get_exam_by_id(session, exam_session.exam_id)
    await enforce_deadline(session, exam_session, exam, now)

    questions = await get_questions_for_exam(session, exam.id)
    res = await session.execute(
        select(Response)
        .where(Response.session_id == exam_session.id)
        .order_by(Response.id)
        .execution_options(populate_existing=True)
    )
    responses = res.scalars().all()

    in_progress = exam_session.status == ExamSessionStatus.IN_PROGRESS
    deadline = deadline_for(exam_session.started_at, exam.time_limit)
    return {
        "session": exam_session,
        "exam": exam,
        "deadline": deadline,
        "remaining_seconds": remaining_seconds(deadline, now) if in_progress else 0,
        "questions": [_serialize_question(q, reveal_answers=not in_progress) for q in questions],
        "responses": responses,
    }


async def submit_session(session: AsyncSession, session_id: int, user: User,
                         now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    exam_session = await load_owned_session(
        session, session_id, user, status=ExamSessionStatus.IN_PROGRESS, lock=True
    )
    if exam_session is None:
        raise NotFoundError("Active session not found")

    exam = await get_exam_by_id(session, exam_session.exam_id)
    total = await finalize_submission(session, exam_session, exam, now)
    return {"success": True, "total_points": total, "submitted_late": exam_session.submitted_late}


async def get_user_history(session: AsyncSession, user: User) -> List[ExamSession]:
    res = await session.execute(
        select(ExamSession)
        .where(ExamSession.user_id == user.id)
        .options(selectinload(ExamSession.exam))
        .order_by(ExamSession.started_at.desc(), ExamSession.id.desc())
    )
    return list(res.scalars().all())


async def list_sessions_for_exam(session: AsyncSession, exam_id: int, user: User) -> List[ExamSession]:
    exam = await get_exam_by_id(session, exam_id)
    if exam is None:
        raise NotFoundError("Exam not found")
    if not is_creator(user, exam):
        raise ForbiddenError("Only the creator can view sessions for this exam")

    res = await session.execute(
        select(ExamSession)
        .where(ExamSession.exam_id == exam.id)
        .options(selectinload(ExamSession.user))
        .order_by(ExamSession.started_at.desc(), ExamSession.id.desc())
    )
    return list(res.scalars().all())
