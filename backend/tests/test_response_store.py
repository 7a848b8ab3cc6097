import asyncio

import pytest
from sqlalchemy import select

from examhall.exceptions import NotFoundError, ForbiddenError, ValidationError
from examhall.models.exam_model import QuestionType
from examhall.models.exam_session_model import Response
from examhall.schemas.exam_session_schema import ResponsePayload
from examhall.services import session_service, response_store

from .factories import make_exam, make_session, load_questions

MIXED = [
    {"type": QuestionType.MULTIPLE_CHOICE, "points": 2, "options": [("A", True), ("B", False)]},
    {"type": QuestionType.SHORT_ANSWER, "points": 3},
]


async def _responses(db, session_id):
    res = await db.execute(
        select(Response).where(Response.session_id == session_id).execution_options(populate_existing=True)
    )
    return res.scalars().all()


async def test_repeated_save_keeps_one_row_with_latest_values(db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student], questions=MIXED)
    started = await session_service.start_session(db, exam.id, student)
    questions = await load_questions(db, exam)
    text_q = questions[1]

    for text in ("first draft", "first draft", "final answer"):
        result = await response_store.save_response(
            db, started.id, ResponsePayload(question_id=text_q.id, response_text=text), student
        )
        assert result == {"success": True}

    rows = await _responses(db, started.id)
    assert len(rows) == 1
    assert rows[0].response_text == "final answer"
    assert rows[0].points is None


async def test_changing_selected_option_overwrites(db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student], questions=MIXED)
    started = await session_service.start_session(db, exam.id, student)
    mc = (await load_questions(db, exam))[0]

    await response_store.save_response(
        db, started.id, ResponsePayload(question_id=mc.id, selected_option_id=mc.options[1].id), student
    )
    await response_store.save_response(
        db, started.id, ResponsePayload(question_id=mc.id, selected_option_id=mc.options[0].id), student
    )

    rows = await _responses(db, started.id)
    assert [r.selected_option_id for r in rows] == [mc.options[0].id]


async def test_parallel_saves_for_same_question_never_duplicate(session_maker, db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student], questions=MIXED)
    started = await session_service.start_session(db, exam.id, student)
    text_q = (await load_questions(db, exam))[1]

    async def save(text):
        async with session_maker() as s:
            return await response_store.save_response(
                s, started.id, ResponsePayload(question_id=text_q.id, response_text=text), student
            )

    await asyncio.gather(*(save(f"draft {i}") for i in range(5)))

    rows = await _responses(db, started.id)
    assert len(rows) == 1
    assert rows[0].response_text.startswith("draft ")


async def test_question_from_another_exam_is_rejected(db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student])
    other_exam = await make_exam(db, instructor)
    started = await session_service.start_session(db, exam.id, student)
    foreign_q = (await load_questions(db, other_exam))[0]

    with pytest.raises(NotFoundError, match="Question not found"):
        await response_store.save_response(
            db, started.id, ResponsePayload(question_id=foreign_q.id, selected_option_id=foreign_q.options[0].id),
            student,
        )
    assert await _responses(db, started.id) == []


async def test_option_from_another_question_is_rejected(db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student], questions=[
        {"type": QuestionType.MULTIPLE_CHOICE, "points": 1, "options": [("A", True), ("B", False)]},
        {"type": QuestionType.MULTIPLE_CHOICE, "points": 1, "options": [("C", True), ("D", False)]},
    ])
    started = await session_service.start_session(db, exam.id, student)
    q1, q2 = await load_questions(db, exam)

    with pytest.raises(ValidationError):
        await response_store.save_response(
            db, started.id, ResponsePayload(question_id=q1.id, selected_option_id=q2.options[0].id), student
        )


async def test_option_on_text_question_is_rejected(db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student], questions=MIXED)
    started = await session_service.start_session(db, exam.id, student)
    mc, text_q = await load_questions(db, exam)

    with pytest.raises(ValidationError):
        await response_store.save_response(
            db, started.id, ResponsePayload(question_id=text_q.id, selected_option_id=mc.options[0].id), student
        )


async def test_save_into_someone_elses_session_is_not_found(db, instructor, student, other_student):
    exam = await make_exam(db, instructor, assignees=[student], questions=MIXED)
    started = await session_service.start_session(db, exam.id, student)
    text_q = (await load_questions(db, exam))[1]

    with pytest.raises(NotFoundError, match="Active session not found"):
        await response_store.save_response(
            db, started.id, ResponsePayload(question_id=text_q.id, response_text="x"), other_student
        )


async def test_save_after_submit_is_not_found(db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student], questions=MIXED)
    started = await session_service.start_session(db, exam.id, student)
    await session_service.submit_session(db, started.id, student)
    text_q = (await load_questions(db, exam))[1]

    with pytest.raises(NotFoundError):
        await response_store.save_response(
            db, started.id, ResponsePayload(question_id=text_q.id, response_text="too late"), student
        )


async def test_save_on_overdue_session_submits_and_refuses(db, instructor, student):
    exam = await make_exam(db, instructor, assignees=[student], questions=MIXED, time_limit=15)
    overdue = await make_session(db, exam, student, minutes_ago=30)
    text_q = (await load_questions(db, exam))[1]

    with pytest.raises(ForbiddenError, match="time limit"):
        await response_store.save_response(
            db, overdue.id, ResponsePayload(question_id=text_q.id, response_text="x"), student
        )
    assert await _responses(db, overdue.id) == []
