"""
Data Sync API Endpoints

GET  /api/v1/sync/versions              - Global and per-table change versions
GET  /api/v1/sync/errors                - Registered failed operations
POST /api/v1/sync/errors/{key}/retry    - Re-run a failed operation
"""
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel

from lavtutor.api.auth import get_current_user
from lavtutor.models.user import User
from lavtutor.services.change_feed import DataSync, get_data_sync

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


class VersionsResponse(BaseModel):
    data: Dict[str, Any]
    metadata: Dict[str, Any]


class ErrorListResponse(BaseModel):
    data: List[Dict[str, Any]]


class RetryResponse(BaseModel):
    data: Dict[str, Any]


@router.get("/versions", response_model=VersionsResponse)
async def get_versions(
    user: User = Depends(get_current_user),
    data_sync: DataSync = Depends(get_data_sync),
):
    """Poll this and re-fetch any table whose version moved."""
    return VersionsResponse(data=data_sync.snapshot(), metadata={"timestamp": datetime.utcnow().isoformat()})


@router.get("/errors", response_model=ErrorListResponse)
async def list_errors(
    user: User = Depends(get_current_user),
    data_sync: DataSync = Depends(get_data_sync),
):
    return ErrorListResponse(data=data_sync.list_errors())


@router.post("/errors/{key}/retry", response_model=RetryResponse)
async def retry_error(
    key: str = Path(...),
    user: User = Depends(get_current_user),
    data_sync: DataSync = Depends(get_data_sync),
):
    succeeded = await data_sync.retry_error(key)
    return RetryResponse(data={"key": key, "succeeded": succeeded})
