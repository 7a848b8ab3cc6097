from examhall.db import Base
from sqlalchemy import String, Text


"""
Exam catalog tables
| Table | Notes |
| :--- | :--- |
| `exams` | `time_limit` in minutes, must be > 0 |
| `questions` | `order_index` unique per exam, defines presentation order |
| `options` | multiple_choice answers, exactly the ones flagged `is_correct` score |
| `exam_assignments` | (exam, user) grant to start a session |
"""

from sqlalchemy import (
    Column, Boolean, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from fastapi_users_db_sqlalchemy.generics import GUID
from examhall.services.timing import utcnow
import enum


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"


class Exam(Base):
    __tablename__ = "exams"
    __table_args__ = (CheckConstraint("time_limit > 0", name="ck_exams_time_limit_positive"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    time_limit = Column(Integer, nullable=False)  # in minutes
    available_from = Column(DateTime, nullable=True)
    available_to = Column(DateTime, nullable=True)
    finalized = Column(Boolean, nullable=False, default=False)
    created_by_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    questions = relationship(
        "Question",
        back_populates="exam",
        order_by="Question.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    assignments = relationship("ExamAssignment", back_populates="exam", passive_deletes=True)


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        UniqueConstraint("exam_id", "order_index", name="uq_questions_exam_order"),
        CheckConstraint("points > 0", name="ck_questions_points_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(SAEnum(QuestionType, name="question_type"), nullable=False)
    points = Column(Integer, nullable=False, default=1)
    order_index = Column(Integer, nullable=False)

    exam = relationship("Exam", back_populates="questions")
    options = relationship(
        "Option",
        back_populates="question",
        order_by="Option.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Option(Base):
    __tablename__ = "options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False)

    question = relationship("Question", back_populates="options")


class ExamAssignment(Base):
    __tablename__ = "exam_assignments"
    __table_args__ = (UniqueConstraint("exam_id", "user_id", name="uq_exam_assignment"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_at = Column(DateTime, nullable=False, default=utcnow)

    exam = relationship("Exam", back_populates="assignments")
