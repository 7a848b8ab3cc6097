from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from ..models.exam_session_model import ExamSessionStatus
from .exam_schema import ExamSummary, QuestionRead, OptionRead
from .user_schema import UserSummary


class SessionRead(BaseModel):
    id: int
    exam_id: int
    user_id: UUID
    started_at: datetime
    submitted_at: Optional[datetime] = None
    status: ExamSessionStatus
    total_points: Optional[int] = None
    submitted_late: bool = False

    model_config = ConfigDict(from_attributes=True)


class ResponsePayload(BaseModel):
    question_id: int = Field(..., gt=0)
    response_text: Optional[str] = None
    selected_option_id: Optional[int] = Field(None, gt=0)


class ResponseRead(BaseModel):
    id: int
    question_id: int
    response_text: Optional[str] = None
    selected_option_id: Optional[int] = None
    points: Optional[int] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ActiveSession(BaseModel):
    session: SessionRead
    exam: ExamSummary
    deadline: datetime
    remaining_seconds: int
    questions: List[QuestionRead]
    responses: List[ResponseRead]


class SaveResult(BaseModel):
    success: bool = True


class SubmitResult(BaseModel):
    success: bool = True
    total_points: int
    submitted_late: bool = False


class HistoryItem(SessionRead):
    exam: ExamSummary


class GradedResponseRead(ResponseRead):
    graded_by_id: Optional[UUID] = None
    question: QuestionRead
    selected_option: Optional[OptionRead] = None


class GradingSession(SessionRead):
    exam: ExamSummary
    user: UserSummary
    responses: List[GradedResponseRead]


class ExamSessionListItem(SessionRead):
    user: UserSummary
