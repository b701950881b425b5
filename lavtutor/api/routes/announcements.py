"""
Announcement API Endpoints

GET    /api/v1/announcements          - Recent announcements, newest first
GET    /api/v1/announcements/latest   - The featured (newest) announcement
POST   /api/v1/announcements          - Publish (admin), optionally notifying users
PUT    /api/v1/announcements/{id}     - Edit text (admin)
DELETE /api/v1/announcements/{id}     - Remove (admin)
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from pydantic import BaseModel, Field

from lavtutor.api.auth import get_current_user, require_admin
from lavtutor.models.user import User
from lavtutor.services.bulletin import BulletinService, get_bulletin_service

router = APIRouter(prefix="/api/v1/announcements", tags=["announcements"])


class AnnouncementCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, description="Announcement text")
    notify: bool = Field(False, description="Also send an announcement notification")
    role: Optional[str] = Field(None, description="Notify only users with this role")


class AnnouncementUpdateRequest(BaseModel):
    content: str = Field(..., min_length=1)


class AnnouncementListResponse(BaseModel):
    data: List[Dict[str, Any]]
    metadata: Dict[str, Any]


class AnnouncementResponse(BaseModel):
    data: Optional[Dict[str, Any]]


@router.get("", response_model=AnnouncementListResponse)
async def list_announcements(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    service: BulletinService = Depends(get_bulletin_service),
):
    announcements = await service.list_announcements(limit=limit)
    return AnnouncementListResponse(
        data=announcements,
        metadata={"timestamp": datetime.utcnow().isoformat(), "count": len(announcements)},
    )


@router.get("/latest", response_model=AnnouncementResponse)
async def latest_announcement(
    user: User = Depends(get_current_user),
    service: BulletinService = Depends(get_bulletin_service),
):
    return AnnouncementResponse(data=await service.latest_announcement())


@router.post("", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    body: AnnouncementCreateRequest,
    admin: User = Depends(require_admin),
    service: BulletinService = Depends(get_bulletin_service),
):
    announcement = await service.create_announcement(admin, body.content, notify=body.notify, role=body.role)
    return AnnouncementResponse(data=announcement)


@router.put("/{announcement_id}", response_model=AnnouncementResponse)
async def update_announcement(
    body: AnnouncementUpdateRequest,
    announcement_id: uuid.UUID = Path(...),
    admin: User = Depends(require_admin),
    service: BulletinService = Depends(get_bulletin_service),
):
    return AnnouncementResponse(data=await service.update_announcement(admin, announcement_id, body.content))


@router.delete("/{announcement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_announcement(
    announcement_id: uuid.UUID = Path(...),
    admin: User = Depends(require_admin),
    service: BulletinService = Depends(get_bulletin_service),
):
    await service.delete_announcement(admin, announcement_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
