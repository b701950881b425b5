"""
Availability API Endpoints

GET    /api/v1/availability?tutor_id=   - A tutor's weekly slots (own when omitted)
POST   /api/v1/availability             - Tutor publishes a slot
DELETE /api/v1/availability/{id}        - Tutor removes a slot
"""
import uuid
from datetime import datetime, time as Time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from pydantic import BaseModel, Field

from lavtutor.api.auth import get_current_user, require_tutor
from lavtutor.errors import ValidationFailed
from lavtutor.models.user import User
from lavtutor.services.schedule_service import ScheduleService, get_schedule_service

router = APIRouter(prefix="/api/v1/availability", tags=["availability"])


class SlotRequest(BaseModel):
    day: str = Field(..., description="Weekday name, e.g. Monday")
    start_time: Time
    end_time: Time


class SlotListResponse(BaseModel):
    data: List[Dict[str, Any]]
    metadata: Dict[str, Any]


class SlotResponse(BaseModel):
    data: Dict[str, Any]


@router.get("", response_model=SlotListResponse)
async def list_slots(
    tutor_id: Optional[uuid.UUID] = Query(None, description="Tutor whose slots to list"),
    user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    target = tutor_id or user.user_id
    if tutor_id is None and user.role != "tutor":
        raise ValidationFailed("tutor_id is required.", details={"field": "tutor_id"})
    slots = await service.list_slots(target)
    return SlotListResponse(
        data=slots,
        metadata={"timestamp": datetime.utcnow().isoformat(), "tutor_id": str(target)},
    )


@router.post("", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def add_slot(
    body: SlotRequest,
    tutor: User = Depends(require_tutor),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Publish a weekly slot inside 08:00-12:00 or 13:00-17:00."""
    slot = await service.add_slot(tutor, body.day, body.start_time, body.end_time)
    return SlotResponse(data=slot)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    schedule_id: uuid.UUID = Path(...),
    tutor: User = Depends(require_tutor),
    service: ScheduleService = Depends(get_schedule_service),
):
    await service.delete_slot(tutor, schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
