"""
Tutor Profile API Endpoints

GET /api/v1/profile  - The calling tutor's profile
PUT /api/v1/profile  - Create or update it (only the fields sent change)
"""
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lavtutor.api.auth import require_tutor
from lavtutor.models.user import User
from lavtutor.services.profile_service import ProfileService, get_profile_service

router = APIRouter(prefix="/api/v1/profile", tags=["profile"])


class ProfileRequest(BaseModel):
    subject: Optional[str] = Field(None, max_length=100)
    specialization: Optional[str] = Field(None, max_length=200)
    college: Optional[str] = Field(None, max_length=200)
    program: Optional[str] = Field(None, max_length=200)
    year_level: Optional[Union[int, str]] = None
    online_link: Optional[str] = Field(None, max_length=500, description="Default meeting link")
    file_link: Optional[str] = Field(None, max_length=500, description="Default materials link")


class ProfileResponse(BaseModel):
    data: Dict[str, Any]


@router.get("", response_model=ProfileResponse)
async def get_profile(
    tutor: User = Depends(require_tutor),
    service: ProfileService = Depends(get_profile_service),
):
    return ProfileResponse(data=await service.get_profile(tutor))


@router.put("", response_model=ProfileResponse)
async def update_profile(
    body: ProfileRequest,
    tutor: User = Depends(require_tutor),
    service: ProfileService = Depends(get_profile_service),
):
    """Links set here are shown on every appointment that has none of its own."""
    profile = await service.update_profile(tutor, body.model_dump(exclude_unset=True))
    return ProfileResponse(data=profile)
