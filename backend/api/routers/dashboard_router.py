"""Dashboard API routes"""

from fastapi import APIRouter, Depends

from core.dependencies import get_current_account, get_dashboard_service
from services import DashboardService
from shared.models import Account

from .schemas import APIModel

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


class DashboardSummary(APIModel):
    total_points: int
    points_change: int
    total_watchtime: int
    watchtime_change: int
    win_rate: int
    win_rate_change: int
    active_channels: int
    total_channels: int


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(
    account: Account = Depends(get_current_account),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardSummary:
    """Totals across the caller's channels and predictions"""
    return DashboardSummary(**await service.summary(account))
