from fastapi_users import schemas
from examhall.models.user_model import UserRole
import uuid
from typing import Optional
from pydantic import BaseModel, ConfigDict


class UserRead(schemas.BaseUser[uuid.UUID]):
    full_name: Optional[str] = None
    role: UserRole


class UserCreate(schemas.BaseUserCreate):
    full_name: str
    role: UserRole = UserRole.STUDENT  # Default role on creation


class UserUpdate(schemas.BaseUserUpdate):
    full_name: str | None = None
    role: UserRole | None = None


class UserSummary(BaseModel):
    id: uuid.UUID
    email: str
    full_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
