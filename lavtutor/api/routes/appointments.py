"""
Appointment API Endpoints

POST   /api/v1/appointments                     - Book a session (tutee)
GET    /api/v1/appointments                     - List own appointments
GET    /api/v1/appointments/{id}                - Appointment detail
PATCH  /api/v1/appointments/{id}                - Reschedule a pending request (tutee)
DELETE /api/v1/appointments/{id}                - Delete a pending request
POST   /api/v1/appointments/{id}/confirm        - Tutor confirms with a location
POST   /api/v1/appointments/{id}/decline        - Tutor declines with a reason
POST   /api/v1/appointments/{id}/start          - Tutor starts the session
POST   /api/v1/appointments/{id}/cancel         - Tutor or tutee cancels with a reason
POST   /api/v1/appointments/{id}/end            - Tutor ends the session
POST   /api/v1/appointments/{id}/complete       - Tutee submits the survey and completes
PUT    /api/v1/appointments/{id}/resources      - Tutee shares a resource link/note
"""
import uuid
from datetime import date as Date, datetime, time as Time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from pydantic import BaseModel, Field

from lavtutor.api.auth import get_current_user
from lavtutor.models.user import User
from lavtutor.services.appointment_service import AppointmentService, get_appointment_service
from lavtutor.services.evaluation_service import EvaluationService, get_evaluation_service

router = APIRouter(prefix="/api/v1/appointments", tags=["appointments"])


class BookingRequest(BaseModel):
    """Request body for POST /appointments"""
    tutor_id: uuid.UUID
    subject: str = Field(..., min_length=1, max_length=100)
    topic: Optional[str] = Field(None, max_length=200)
    mode_of_session: str = Field(..., description="Online or Face-to-Face")
    date: Date
    start_time: Time
    end_time: Time
    number_of_tutees: int = Field(1, ge=1)


class RescheduleRequest(BaseModel):
    """Request body for PATCH /appointments/{id}"""
    date: Optional[Date] = None
    start_time: Optional[Time] = None
    end_time: Optional[Time] = None
    mode_of_session: Optional[str] = None


class ConfirmRequest(BaseModel):
    location: Optional[str] = Field(None, description="Room or meeting link")


class ReasonRequest(BaseModel):
    reason: Optional[str] = None


class SurveyRequest(BaseModel):
    """Both five-question surveys; each answer is 1-5 or 'N/A'"""
    presentation_clarity: Optional[str] = None
    drills_sufficiency: Optional[str] = None
    patience_enthusiasm: Optional[str] = None
    study_skills_development: Optional[str] = None
    positive_impact: Optional[str] = None
    lav_environment: Optional[str] = None
    lav_scheduling: Optional[str] = None
    lav_support: Optional[str] = None
    lav_book_again: Optional[str] = None
    lav_value: Optional[str] = None
    tutor_comment: Optional[str] = None


class ResourceRequest(BaseModel):
    resource_link: Optional[str] = Field(None, max_length=500)
    resource_note: Optional[str] = None


class AppointmentResponse(BaseModel):
    data: Dict[str, Any]
    metadata: Dict[str, Any]


class AppointmentListResponse(BaseModel):
    data: List[Dict[str, Any]]
    metadata: Dict[str, Any]


def _metadata(**extra) -> Dict[str, Any]:
    return {"timestamp": datetime.utcnow().isoformat(), **extra}


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookingRequest,
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """
    Book a session with a tutor.

    The date must be at least three days ahead and on a weekday, and the
    time must sit inside one of the tutor's published slots.
    """
    appointment = await service.book(user, body.model_dump())
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    status_filter: Optional[str] = Query(None, alias="status", description="Only this status"),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """
    List the caller's appointments as tutor or tutee (all of them for admins).

    Loading applies auto-expiry and re-arms the timers of started sessions.
    """
    appointments = await service.list_for_user(user, status=status_filter)
    return AppointmentListResponse(data=appointments, metadata=_metadata(count=len(appointments)))


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.get(user, appointment_id)
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
async def reschedule_appointment(
    body: RescheduleRequest,
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.reschedule(user, appointment_id, body.model_dump(exclude_none=True))
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Delete a pending request. Any other status is rejected with 409."""
    await service.delete(user, appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    body: ConfirmRequest,
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.confirm(user, appointment_id, body.location)
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.post("/{appointment_id}/decline", response_model=AppointmentResponse)
async def decline_appointment(
    body: ReasonRequest,
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.decline(user, appointment_id, body.reason)
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
async def start_appointment(
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.start(user, appointment_id)
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    body: ReasonRequest,
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.cancel(user, appointment_id, body.reason)
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.post("/{appointment_id}/end", response_model=AppointmentResponse)
async def end_appointment(
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.end(user, appointment_id)
    return AppointmentResponse(data=appointment, metadata=_metadata())


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    body: SurveyRequest,
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: EvaluationService = Depends(get_evaluation_service),
):
    """
    Submit the satisfaction survey and complete the appointment.

    Rejected unless the appointment is awaiting feedback and all ten ratings
    are answered.
    """
    answers = body.model_dump(exclude={"tutor_comment"})
    evaluation = await service.submit_survey(user, appointment_id, answers, body.tutor_comment)
    return AppointmentResponse(data=evaluation, metadata=_metadata())


@router.put("/{appointment_id}/resources", response_model=AppointmentResponse)
async def share_resources(
    body: ResourceRequest,
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.share_resources(user, appointment_id, body.resource_link, body.resource_note)
    return AppointmentResponse(data=appointment, metadata=_metadata())
