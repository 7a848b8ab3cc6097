from fastapi import Depends, HTTPException, status, Request
from examhall.models.user_model import User
from .security import current_active_user
from .permissions import is_admin, is_instructor


async def current_instructor(user: User = Depends(current_active_user)):
    if not is_instructor(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only instructors can do this")
    return user


async def users_router_permission(request: Request, user: User = Depends(current_active_user)):
    # Role changes go through admins only
    method = request.method.upper()
    if method in ("POST", "PUT", "PATCH", "DELETE"):
        if not is_admin(user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
    return True
