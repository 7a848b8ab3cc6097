from examhall.db import Base
from sqlalchemy import Column, Integer, Boolean, DateTime, Text, Index, Enum as SAEnum, UniqueConstraint, text
from sqlalchemy import ForeignKey
from sqlalchemy.orm import relationship
from fastapi_users_db_sqlalchemy.generics import GUID
import enum

from examhall.services.timing import utcnow


class ExamSessionStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    GRADED = "graded"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    def can_transition_to(self, target: "ExamSessionStatus") -> bool:
        # staying put is allowed so grading can leave a session pending or regrade it
        return target.rank >= self.rank


_STATUS_ORDER = [ExamSessionStatus.IN_PROGRESS, ExamSessionStatus.SUBMITTED, ExamSessionStatus.GRADED]


class ExamSession(Base):
    __tablename__ = "exam_sessions"
    __table_args__ = (
        # at most one in-progress attempt per user, across all exams
        Index(
            "uq_exam_sessions_user_in_progress",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'IN_PROGRESS'"),
            sqlite_where=text("status = 'IN_PROGRESS'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id"), nullable=False, index=True)

    started_at = Column(DateTime, nullable=False, default=utcnow)
    submitted_at = Column(DateTime, nullable=True)
    status = Column(SAEnum(ExamSessionStatus, name="exam_session_status"), default=ExamSessionStatus.IN_PROGRESS,
                    nullable=False)
    total_points = Column(Integer, nullable=True)
    submitted_late = Column(Boolean, nullable=False, default=False)

    exam = relationship("Exam")
    user = relationship("User")
    responses = relationship(
        "Response",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Response.id",
    )

    def transition_to(self, target: ExamSessionStatus) -> None:
        current = ExamSessionStatus(self.status)
        if not current.can_transition_to(target):
            raise ValueError(f"Illegal session transition {current.value} -> {target.value}")
        self.status = target


class Response(Base):
    __tablename__ = "responses"
    __table_args__ = (UniqueConstraint("session_id", "question_id", name="uq_response_session_question"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    response_text = Column(Text, nullable=True)
    selected_option_id = Column(Integer, ForeignKey("options.id"), nullable=True)

    # null means "not yet graded"
    points = Column(Integer, nullable=True)
    graded_by_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    graded_at = Column(DateTime, nullable=True)
    feedback = Column(Text, nullable=True)

    session = relationship("ExamSession", back_populates="responses")
    question = relationship("Question")
    selected_option = relationship("Option")
