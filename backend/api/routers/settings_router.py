"""User settings API routes"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import Field, HttpUrl

from core.dependencies import get_current_account, get_settings_service
from services import SettingsService
from shared.models import Account

from .schemas import APIModel

router = APIRouter(prefix="/api/settings", tags=["settings"])

# Clearing these with an explicit null is allowed; other fields ignore null.
NULLABLE_FIELDS = {"webhook_url"}


class SettingsResponse(APIModel):
    id: int
    owner_id: int
    risk_level: str
    max_points_per_prediction: int
    use_chat_sentiment: bool
    use_historical_outcomes: bool
    use_streamer_performance: bool
    use_global_patterns: bool
    notifications_enabled: bool
    webhook_url: str | None = None


class SettingsUpdate(APIModel):
    risk_level: Literal["conservative", "balanced", "aggressive"] | None = None
    max_points_per_prediction: int | None = Field(default=None, ge=1)
    use_chat_sentiment: bool | None = None
    use_historical_outcomes: bool | None = None
    use_streamer_performance: bool | None = None
    use_global_patterns: bool | None = None
    notifications_enabled: bool | None = None
    webhook_url: HttpUrl | None = None

    def changes(self) -> dict:
        values = self.model_dump(exclude_unset=True)
        if values.get("webhook_url") is not None:
            values["webhook_url"] = str(values["webhook_url"])
        return {k: v for k, v in values.items() if v is not None or k in NULLABLE_FIELDS}


@router.get("", response_model=SettingsResponse)
async def get_settings(
    account: Account = Depends(get_current_account),
    service: SettingsService = Depends(get_settings_service),
) -> SettingsResponse:
    settings = await service.get(account)
    return SettingsResponse.from_record(settings)


@router.put("", response_model=SettingsResponse)
async def update_settings(
    body: SettingsUpdate,
    account: Account = Depends(get_current_account),
    service: SettingsService = Depends(get_settings_service),
) -> SettingsResponse:
    """Merge the supplied fields, creating the row from defaults if needed"""
    settings = await service.upsert(account, body.changes())
    return SettingsResponse.from_record(settings)
