"""
Exam catalog and assignment registry.

The session core only reads from here (``get_exam_by_id``,
``get_questions_for_exam``, ``is_assigned``); the write side exists so
instructors can author, finalize and assign exams.
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..exceptions import NotFoundError, ForbiddenError, ConflictError, ValidationError
from ..models.exam_model import Exam, Question, Option, ExamAssignment
from ..models.user_model import User
from ..permissions import is_creator, is_instructor
from ..schemas.exam_schema import ExamCreate, QuestionCreate
from .timing import to_naive_utc, is_within_window

logger = logging.getLogger(__name__)


async def get_exam_by_id(session: AsyncSession, exam_id: int) -> Optional[Exam]:
    res = await session.execute(select(Exam).where(Exam.id == exam_id))
    return res.scalar_one_or_none()


async def get_questions_for_exam(session: AsyncSession, exam_id: int) -> List[Question]:
    stmt = (
        select(Question)
        .where(Question.exam_id == exam_id)
        .options(selectinload(Question.options))
        .order_by(Question.order_index)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def get_question_in_exam(session: AsyncSession, question_id: int, exam_id: int) -> Optional[Question]:
    stmt = (
        select(Question)
        .where(Question.id == question_id, Question.exam_id == exam_id)
        .options(selectinload(Question.options))
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def is_assigned(session: AsyncSession, user_id: UUID, exam_id: int) -> bool:
    res = await session.execute(
        select(ExamAssignment.id).where(ExamAssignment.exam_id == exam_id, ExamAssignment.user_id == user_id)
    )
    return res.first() is not None


async def _get_owned_exam(session: AsyncSession, exam_id: int, user: User, action: str) -> Exam:
    exam = await get_exam_by_id(session, exam_id)
    if exam is None:
        raise NotFoundError("Exam not found")
    if not is_creator(user, exam):
        raise ForbiddenError(f"Only the creator can {action} this exam")
    return exam


async def create_exam(session: AsyncSession, payload: ExamCreate, user: User) -> Exam:
    if not is_instructor(user):
        raise ForbiddenError("Only instructors can create exams")

    exam = Exam(
        title=payload.title,
        description=payload.description,
        time_limit=payload.time_limit,
        available_from=to_naive_utc(payload.available_from),
        available_to=to_naive_utc(payload.available_to),
        finalized=False,
        created_by_id=user.id,
    )
    session.add(exam)
    await session.commit()
    await session.refresh(exam)
    logger.info("Exam %s created by %s", exam.id, user.id)
    return exam


async def get_exam_for_creator(session: AsyncSession, exam_id: int, user: User) -> Exam:
    await _get_owned_exam(session, exam_id, user, "view")
    res = await session.execute(
        select(Exam)
        .where(Exam.id == exam_id)
        .options(selectinload(Exam.questions).selectinload(Question.options))
    )
    return res.scalar_one()


async def add_question(session: AsyncSession, exam_id: int, payload: QuestionCreate, user: User) -> Question:
    exam = await _get_owned_exam(session, exam_id, user, "edit")
    if exam.finalized:
        raise ConflictError("Finalized exams cannot be edited")

    order_index = payload.order_index
    if order_index is None:
        res = await session.execute(select(func.max(Question.order_index)).where(Question.exam_id == exam.id))
        current_max = res.scalar_one_or_none()
        order_index = 0 if current_max is None else current_max + 1
    else:
        clash = await session.execute(
            select(Question.id).where(Question.exam_id == exam.id, Question.order_index == order_index)
        )
        if clash.first() is not None:
            raise ValidationError(f"order_index {order_index} is already used in this exam")

    question = Question(
        exam_id=exam.id,
        question_text=payload.question_text,
        question_type=payload.question_type,
        points=payload.points,
        order_index=order_index,
    )
    question.options = [
        Option(option_text=o.option_text, is_correct=o.is_correct, order_index=idx)
        for idx, o in enumerate(payload.options)
    ]
    session.add(question)
    await session.commit()

    res = await session.execute(
        select(Question).where(Question.id == question.id).options(selectinload(Question.options))
    )
    return res.scalar_one()


async def finalize_exam(session: AsyncSession, exam_id: int, user: User) -> Exam:
    exam = await _get_owned_exam(session, exam_id, user, "finalize")
    count = await session.execute(select(func.count()).select_from(Question).where(Question.exam_id == exam.id))
    if (count.scalar_one() or 0) == 0:
        raise ValidationError("Cannot finalize an exam with no questions")
    exam.finalized = True
    await session.commit()
    await session.refresh(exam)
    logger.info("Exam %s finalized", exam.id)
    return exam


async def assign_users(session: AsyncSession, exam_id: int, user_ids: List[UUID], user: User) -> dict:
    exam = await get_exam_by_id(session, exam_id)
    if exam is None:
        raise NotFoundError("Exam not found")
    if not exam.finalized:
        raise ValidationError("Cannot assign an exam that is not finalized")
    if not is_creator(user, exam):
        raise ForbiddenError("Only the creator can assign this exam")

    result = {
        "success": True,
        "assigned_count": 0,
        "already_assigned_count": 0,
        "not_found": [],
        "total_input_count": len(user_ids),
    }

    # dedupe while keeping input order
    for user_id in dict.fromkeys(user_ids):
        target = await session.get(User, user_id)
        if target is None:
            result["not_found"].append(user_id)
            continue
        if await is_assigned(session, user_id, exam.id):
            result["already_assigned_count"] += 1
            continue
        session.add(ExamAssignment(exam_id=exam.id, user_id=user_id))
        result["assigned_count"] += 1

    await session.commit()
    logger.info("Exam %s assigned to %d users", exam.id, result["assigned_count"])
    return result


async def list_available_exams(session: AsyncSession, user: User) -> List[Exam]:
    stmt = (
        select(Exam)
        .join(ExamAssignment, ExamAssignment.exam_id == Exam.id)
        .where(ExamAssignment.user_id == user.id)
        .order_by(Exam.id)
    )
    res = await session.execute(stmt)
    return [exam for exam in res.scalars().all() if is_within_window(exam.available_from, exam.available_to)]
