from pydantic import BaseModel, Field
from typing import Optional

from ..models.exam_session_model import ExamSessionStatus


class GradePayload(BaseModel):
    points: int = Field(..., ge=0)
    feedback: Optional[str] = None


class GradeResult(BaseModel):
    success: bool = True
    total_points: int
    status: ExamSessionStatus
