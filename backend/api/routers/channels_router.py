"""Tracked channel API routes"""

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, status
from pydantic import ConfigDict, Field

from core.dependencies import get_channel_service, get_current_account
from services import ChannelService
from shared.models import Account

from .schemas import APIModel, ChannelResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/channels", tags=["channels"])

# API flag name -> Channel attribute
TOGGLE_FIELDS = {
    "autoFarming": "auto_farming",
    "autoWatchtime": "auto_watchtime",
    "autoPredictions": "auto_predictions",
}


# ============================================
# Request / Response Models
# ============================================


class ChannelCreate(APIModel):
    channel_id: str = Field(min_length=1)
    channel_name: str = Field(min_length=1)
    auto_farming: bool = True
    auto_watchtime: bool = True
    auto_predictions: bool = True


class ChannelUpdate(APIModel):
    model_config = ConfigDict(extra="forbid")

    channel_name: str | None = Field(default=None, min_length=1)
    auto_farming: bool | None = None
    auto_watchtime: bool | None = None
    auto_predictions: bool | None = None


class ToggleSetting(APIModel):
    channel_id: str = Field(min_length=1)
    setting: Literal["autoFarming", "autoWatchtime", "autoPredictions"]
    value: bool


class ChannelStatsResponse(APIModel):
    total_points: int
    total_watchtime: int
    predictions_won: int
    predictions_lost: int
    win_rate: float
    last_points_update: datetime | None = None
    last_watchtime_update: datetime | None = None


# ============================================
# Endpoints
# ============================================


@router.get("", response_model=list[ChannelResponse])
async def list_channels(
    account: Account = Depends(get_current_account),
    service: ChannelService = Depends(get_channel_service),
) -> list[ChannelResponse]:
    channels = await service.list_channels(account)
    return [ChannelResponse.from_record(c) for c in channels]


@router.post("", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def add_channel(
    body: ChannelCreate,
    account: Account = Depends(get_current_account),
    service: ChannelService = Depends(get_channel_service),
) -> ChannelResponse:
    """Start tracking a channel"""
    channel = await service.add_channel(
        account,
        body.channel_id,
        body.channel_name,
        auto_farming=body.auto_farming,
        auto_watchtime=body.auto_watchtime,
        auto_predictions=body.auto_predictions,
    )
    return ChannelResponse.from_record(channel)


# Static paths go before /{channel_pk}


@router.get("/stats/{channel_id}", response_model=ChannelStatsResponse)
async def channel_stats(
    channel_id: str,
    account: Account = Depends(get_current_account),
    service: ChannelService = Depends(get_channel_service),
) -> ChannelStatsResponse:
    """Counters and prediction win rate for a channel, by its Twitch id"""
    stats = await service.get_stats(account, channel_id)
    return ChannelStatsResponse(**stats)


@router.post("/toggle-setting", response_model=ChannelResponse)
async def toggle_setting(
    body: ToggleSetting,
    account: Account = Depends(get_current_account),
    service: ChannelService = Depends(get_channel_service),
) -> ChannelResponse:
    channel = await service.toggle_setting(
        account, body.channel_id, TOGGLE_FIELDS[body.setting], body.value
    )
    return ChannelResponse.from_record(channel)


@router.get("/{channel_pk}", response_model=ChannelResponse)
async def get_channel(
    channel_pk: int,
    account: Account = Depends(get_current_account),
    service: ChannelService = Depends(get_channel_service),
) -> ChannelResponse:
    channel = await service.get_channel(account, channel_pk)
    return ChannelResponse.from_record(channel)


@router.put("/{channel_pk}", response_model=ChannelResponse)
async def update_channel(
    channel_pk: int,
    body: ChannelUpdate,
    account: Account = Depends(get_current_account),
    service: ChannelService = Depends(get_channel_service),
) -> ChannelResponse:
    """Rename a channel or change its automation flags"""
    channel = await service.update_channel(
        account, channel_pk, body.model_dump(exclude_unset=True, exclude_none=True)
    )
    return ChannelResponse.from_record(channel)


@router.delete("/{channel_pk}", response_model=MessageResponse)
async def remove_channel(
    channel_pk: int,
    account: Account = Depends(get_current_account),
    service: ChannelService = Depends(get_channel_service),
) -> MessageResponse:
    await service.remove_channel(account, channel_pk)
    return MessageResponse(message="Channel deleted successfully")
