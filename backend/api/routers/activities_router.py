"""Activity feed API routes"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query

from core.dependencies import get_activity_service, get_current_account
from services import ActivityService
from shared.models import Account

from .schemas import APIModel

router = APIRouter(prefix="/api/activities", tags=["activities"])


class ActivityResponse(APIModel):
    id: int
    owner_id: int
    type: str
    description: str
    channel_id: str | None = None
    channel_name: str | None = None
    points: int | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


@router.get("", response_model=list[ActivityResponse])
async def list_activities(
    limit: int | None = Query(None, ge=1),
    account: Account = Depends(get_current_account),
    service: ActivityService = Depends(get_activity_service),
) -> list[ActivityResponse]:
    """Newest first"""
    activities = await service.list_activities(account, limit)
    return [ActivityResponse.from_record(a) for a in activities]
