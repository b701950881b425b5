"""
Report API Endpoints (admin)

GET /api/v1/reports/tutors            - Tutor activity
GET /api/v1/reports/ratings           - Satisfaction rating averages
GET /api/v1/reports/improvement       - Improvement leaderboard (group_by=tutor|tutee)
GET /api/v1/reports/status-breakdown  - Appointment counts per status
"""
import logging
import uuid
from datetime import date as Date, datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from lavtutor.api.auth import require_admin
from lavtutor.errors import LavError
from lavtutor.models.user import User
from lavtutor.services.reports import ReportService, get_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


class ReportResponse(BaseModel):
    """Wrapper for report data"""
    data: Any
    metadata: Dict[str, Any]


def _metadata(start_date: Optional[Date], end_date: Optional[Date], **extra) -> Dict[str, Any]:
    return {
        "timestamp": datetime.utcnow().isoformat(),
        "start_date": start_date.isoformat() if start_date else None,
        "end_date": end_date.isoformat() if end_date else None,
        **extra,
    }


@router.get("/tutors", response_model=ReportResponse)
async def tutor_activity(
    start_date: Optional[Date] = Query(None),
    end_date: Optional[Date] = Query(None),
    tutor_id: Optional[uuid.UUID] = Query(None),
    admin: User = Depends(require_admin),
    service: ReportService = Depends(get_report_service),
):
    """
    Finished sessions per tutor: session count, tutees served, hours and
    sessions per month.
    """
    try:
        rows = await service.tutor_activity(start_date, end_date, tutor_id)
        return ReportResponse(data=rows, metadata=_metadata(start_date, end_date, count=len(rows)))
    except LavError:
        raise
    except Exception as e:
        logger.error(f"Error building tutor activity report: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to build tutor activity report: {str(e)}")


@router.get("/ratings", response_model=ReportResponse)
async def rating_summary(
    start_date: Optional[Date] = Query(None),
    end_date: Optional[Date] = Query(None),
    tutor_id: Optional[uuid.UUID] = Query(None),
    admin: User = Depends(require_admin),
    service: ReportService = Depends(get_report_service),
):
    try:
        summary = await service.rating_summary(start_date, end_date, tutor_id)
        return ReportResponse(data=summary, metadata=_metadata(start_date, end_date))
    except LavError:
        raise
    except Exception as e:
        logger.error(f"Error building rating report: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to build rating report: {str(e)}")


@router.get("/improvement", response_model=ReportResponse)
async def improvement_leaderboard(
    group_by: str = Query("tutor", pattern="^(tutor|tutee)$"),
    start_date: Optional[Date] = Query(None),
    end_date: Optional[Date] = Query(None),
    admin: User = Depends(require_admin),
    service: ReportService = Depends(get_report_service),
):
    try:
        board = await service.improvement_leaderboard(group_by, start_date, end_date)
        return ReportResponse(data=board, metadata=_metadata(start_date, end_date, group_by=group_by))
    except LavError:
        raise
    except Exception as e:
        logger.error(f"Error building improvement leaderboard: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to build improvement leaderboard: {str(e)}")


@router.get("/status-breakdown", response_model=ReportResponse)
async def status_breakdown(
    start_date: Optional[Date] = Query(None),
    end_date: Optional[Date] = Query(None),
    tutor_id: Optional[uuid.UUID] = Query(None),
    admin: User = Depends(require_admin),
    service: ReportService = Depends(get_report_service),
):
    try:
        breakdown = await service.status_breakdown(start_date, end_date, tutor_id)
        return ReportResponse(data=breakdown, metadata=_metadata(start_date, end_date))
    except LavError:
        raise
    except Exception as e:
        logger.error(f"Error building status breakdown: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to build status breakdown: {str(e)}")
