"""
Notification API Endpoints

GET  /api/v1/notifications              - Caller's notifications, newest first
POST /api/v1/notifications/{id}/read    - Mark one as read
POST /api/v1/notifications/read-all     - Mark all as read
POST /api/v1/notifications/announce     - Admin broadcast
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field

from lavtutor.api.auth import get_current_user, require_admin
from lavtutor.models.user import User
from lavtutor.services.notifications import NotificationService, get_notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


class AnnouncementRequest(BaseModel):
    content: str = Field(..., min_length=1, description="Announcement text")
    role: Optional[str] = Field(None, description="Only users with this role; everyone when omitted")


class NotificationListResponse(BaseModel):
    data: List[Dict[str, Any]]
    metadata: Dict[str, Any]


class NotificationResponse(BaseModel):
    data: Dict[str, Any]


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notifications = await service.list_for_user(user.user_id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        data=notifications,
        metadata={"timestamp": datetime.utcnow().isoformat(), "count": len(notifications)},
    )


# Declared before /{notification_id}/read so 'read-all' is not parsed as an id
@router.post("/read-all", response_model=NotificationResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    updated = await service.mark_all_read(user.user_id)
    return NotificationResponse(data={"updated": updated})


@router.post("/announce", response_model=NotificationResponse)
async def announce(
    body: AnnouncementRequest,
    admin: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    recipients = await service.announce(body.content, body.role)
    return NotificationResponse(data={"recipients": recipients})


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notification = await service.mark_read(user.user_id, notification_id)
    return NotificationResponse(data=notification)
