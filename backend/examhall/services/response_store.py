import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError
from ..models.exam_model import Question, QuestionType
from ..models.exam_session_model import ExamSessionStatus, Response
from ..models.user_model import User
from ..schemas.exam_session_schema import ResponsePayload
from .catalog_service import get_exam_by_id, get_question_in_exam
from .session_service import load_owned_session, enforce_deadline
from .timing import utcnow

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _dialect_insert(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Response upsert is not supported on the {dialect} dialect")


def _validate_for_question(question: Question, payload: ResponsePayload) -> None:
    if question.question_type == QuestionType.MULTIPLE_CHOICE:
        if payload.response_text is not None:
            raise ValidationError("multiple_choice responses take selected_option_id, not response_text")
        if payload.selected_option_id is not None:
            option_ids = {o.id for o in question.options}
            if payload.selected_option_id not in option_ids:
                raise ValidationError("Selected option does not belong to this question")
    elif payload.selected_option_id is not None:
        raise ValidationError(f"{question.question_type.value} responses take response_text only")


async def save_response(session: AsyncSession, session_id: int, payload: ResponsePayload, user: User,
                        now: Optional[datetime] = None) -> dict:
    """
    Insert or overwrite the caller's answer to one question.

    Keyed on (session_id, question_id); repeated or overlapping autosaves
    for the same question always end as a single row holding the latest
    values. Scoring is untouched until submit.
    """
    now = now or utcnow()
    exam_session = await load_owned_session(session, session_id, user, status=ExamSessionStatus.IN_PROGRESS)
    if exam_session is None:
        raise NotFoundError("Active session not found")

    exam = await get_exam_by_id(session, exam_session.exam_id)
    await enforce_deadline(session, exam_session, exam, now)

    question = await get_question_in_exam(session, payload.question_id, exam_session.exam_id)
    if question is None:
        logger.warning("Session %s tried to answer question %s outside exam %s",
                       exam_session.id, payload.question_id, exam_session.exam_id)
        raise NotFoundError("Question not found for this exam")
    _validate_for_question(question, payload)

    insert = _dialect_insert(session)
    stmt = insert(Response).values(
        session_id=exam_session.id,
        question_id=question.id,
        response_text=payload.response_text,
        selected_option_id=payload.selected_option_id,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["session_id", "question_id"],
        set_={
            "response_text": stmt.excluded.response_text,
            "selected_option_id": stmt.excluded.selected_option_id,
        },
    )
    try:
        await session.execute(stmt)
        await session.commit()
    except IntegrityError:
        logger.exception("DB IntegrityError while saving response for session %s question %s",
                         session_id, payload.question_id)
        await session.rollback()
        raise
    return {"success": True}
