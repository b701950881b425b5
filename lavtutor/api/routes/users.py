"""
User API Endpoints (admin)

GET /api/v1/users                 - List users, optionally by role
PUT /api/v1/users/{user_id}/role  - Change a user's role
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from lavtutor.api.auth import get_current_user, require_admin
from lavtutor.models.user import User
from lavtutor.services.user_service import UserService, get_user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


class RoleRequest(BaseModel):
    role: str = Field(..., description="tutee, tutor or admin")


class UserListResponse(BaseModel):
    data: List[Dict[str, Any]]
    metadata: Dict[str, Any]


class UserResponse(BaseModel):
    data: Dict[str, Any]


@router.get("/me", response_model=UserResponse)
async def current_user(user: User = Depends(get_current_user)):
    return UserResponse(data={
        "user_id": str(user.user_id),
        "name": user.name,
        "email": user.email,
        "role": user.role,
    })


@router.get("", response_model=UserListResponse)
async def list_users(
    role: Optional[str] = Query(None),
    admin: User = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    users = await service.list_users(role)
    return UserListResponse(
        data=users,
        metadata={"timestamp": datetime.utcnow().isoformat(), "count": len(users)},
    )


@router.put("/{user_id}/role", response_model=UserResponse)
async def change_role(
    body: RoleRequest,
    user_id: uuid.UUID = Path(...),
    admin: User = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    user = await service.change_role(admin, user_id, body.role)
    return UserResponse(data=user)
