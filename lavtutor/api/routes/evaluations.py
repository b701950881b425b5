"""
Evaluation API Endpoints

GET /api/v1/evaluations/{appointment_id}         - Scores, improvement and survey answers
PUT /api/v1/evaluations/{appointment_id}/scores  - Tutor records pre/post test scores
"""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from lavtutor.api.auth import get_current_user
from lavtutor.models.user import User
from lavtutor.services.evaluation_service import EvaluationService, get_evaluation_service

router = APIRouter(prefix="/api/v1/evaluations", tags=["evaluations"])


class ScoresRequest(BaseModel):
    """Request body for PUT /evaluations/{appointment_id}/scores"""
    pre_test_score: Optional[float] = Field(None, description="Pre-test score")
    post_test_score: Optional[float] = Field(None, description="Post-test score")
    pre_test_total: Optional[float] = Field(None, description="Number of pre-test items")
    post_test_total: Optional[float] = Field(None, description="Number of post-test items")
    tutor_notes: Optional[str] = None


class EvaluationResponse(BaseModel):
    data: Dict[str, Any]
    metadata: Dict[str, Any]


@router.get("/{appointment_id}", response_model=EvaluationResponse)
async def get_evaluation(
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: EvaluationService = Depends(get_evaluation_service),
):
    """
    Evaluation for one appointment.

    improvement is None until both scores are recorded.
    """
    evaluation = await service.get(user, appointment_id)
    return EvaluationResponse(data=evaluation, metadata={"timestamp": datetime.utcnow().isoformat()})


@router.put("/{appointment_id}/scores", response_model=EvaluationResponse)
async def save_scores(
    body: ScoresRequest,
    appointment_id: uuid.UUID = Path(...),
    user: User = Depends(get_current_user),
    service: EvaluationService = Depends(get_evaluation_service),
):
    evaluation = await service.save_scores(user, appointment_id, body.model_dump(exclude_unset=True))
    return EvaluationResponse(data=evaluation, metadata={"timestamp": datetime.utcnow().isoformat()})
