from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from ..models.exam_model import QuestionType


class ExamCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit: int
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None

    @field_validator("time_limit")
    @classmethod
    def time_limit_must_be_positive(cls, v):
        if v is None or v <= 0:
            raise ValueError("time_limit must be a positive integer (minutes)")
        return v

    @model_validator(mode="after")
    def available_to_after_from(self):
        if self.available_from and self.available_to and self.available_to <= self.available_from:
            raise ValueError("available_to must be after available_from")
        return self


class OptionCreate(BaseModel):
    option_text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionCreate(BaseModel):
    """
    A question to append to an exam.

    multiple_choice questions need at least one option and exactly one
    correct option; short_answer and essay questions take no options.
    """
    question_text: str = Field(..., min_length=1)
    question_type: QuestionType
    points: int = Field(1, gt=0)
    order_index: Optional[int] = Field(None, ge=0)
    options: List[OptionCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def options_match_type(self):
        if self.question_type == QuestionType.MULTIPLE_CHOICE:
            if not self.options:
                raise ValueError("multiple_choice questions need at least one option")
            if sum(1 for o in self.options if o.is_correct) != 1:
                raise ValueError("multiple_choice questions need exactly one correct option")
        elif self.options:
            raise ValueError(f"{self.question_type.value} questions do not take options")
        return self


class AssignPayload(BaseModel):
    user_ids: List[UUID] = Field(..., min_length=1)


class AssignResult(BaseModel):
    success: bool = True
    assigned_count: int
    already_assigned_count: int
    not_found: List[UUID] = []
    total_input_count: int


class OptionRead(BaseModel):
    id: int
    option_text: str
    order_index: int
    # omitted while the reader's attempt is still running
    is_correct: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)


class QuestionRead(BaseModel):
    id: int
    question_text: str
    question_type: QuestionType
    points: int
    order_index: int
    options: List[OptionRead] = []

    model_config = ConfigDict(from_attributes=True)


class ExamSummary(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    time_limit: int
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    finalized: bool

    model_config = ConfigDict(from_attributes=True)


class ExamRead(ExamSummary):
    created_by_id: UUID
    created_at: datetime
    questions: List[QuestionRead] = []
