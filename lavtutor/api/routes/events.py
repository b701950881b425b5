"""
LAV Event API Endpoints

GET    /api/v1/events          - Events in date order (public, for the landing page)
POST   /api/v1/events          - Create (admin)
PATCH  /api/v1/events/{id}     - Edit the fields sent (admin)
DELETE /api/v1/events/{id}     - Remove (admin)
"""
import uuid
from datetime import date as Date, datetime, time as Time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from pydantic import BaseModel, Field

from lavtutor.api.auth import require_admin
from lavtutor.models.user import User
from lavtutor.services.bulletin import BulletinService, get_bulletin_service

router = APIRouter(prefix="/api/v1/events", tags=["events"])


class EventRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    date: Date
    time: Time
    location: str = Field(..., min_length=1, max_length=300)


class EventUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    date: Optional[Date] = None
    time: Optional[Time] = None
    location: Optional[str] = Field(None, max_length=300)


class EventListResponse(BaseModel):
    data: List[Dict[str, Any]]
    metadata: Dict[str, Any]


class EventResponse(BaseModel):
    data: Dict[str, Any]


def _columns(values: Dict[str, Any]) -> Dict[str, Any]:
    return {f"event_{key}": value for key, value in values.items()}


@router.get("", response_model=EventListResponse)
async def list_events(
    upcoming: bool = Query(False, description="Only events from today on"),
    service: BulletinService = Depends(get_bulletin_service),
):
    events = await service.list_events(upcoming_only=upcoming)
    return EventListResponse(
        data=events,
        metadata={"timestamp": datetime.utcnow().isoformat(), "count": len(events)},
    )


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventRequest,
    admin: User = Depends(require_admin),
    service: BulletinService = Depends(get_bulletin_service),
):
    return EventResponse(data=await service.create_event(admin, _columns(body.model_dump())))


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    body: EventUpdateRequest,
    event_id: uuid.UUID = Path(...),
    admin: User = Depends(require_admin),
    service: BulletinService = Depends(get_bulletin_service),
):
    changes = _columns(body.model_dump(exclude_unset=True))
    return EventResponse(data=await service.update_event(admin, event_id, changes))


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: uuid.UUID = Path(...),
    admin: User = Depends(require_admin),
    service: BulletinService = Depends(get_bulletin_service),
):
    await service.delete_event(admin, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
