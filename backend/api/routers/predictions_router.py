"""Prediction history API routes"""

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field

from core.dependencies import get_current_account, get_prediction_service
from services import PredictionService
from shared.models import Account

from .schemas import APIModel, PredictionResponse

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


class PredictionCreate(APIModel):
    channel_id: str = Field(min_length=1)
    prediction_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    points: int = Field(ge=1)
    chosen_option: str = Field(min_length=1)


@router.get("", response_model=list[PredictionResponse])
async def list_predictions(
    limit: int | None = Query(None, ge=1),
    account: Account = Depends(get_current_account),
    service: PredictionService = Depends(get_prediction_service),
) -> list[PredictionResponse]:
    """All of the caller's predictions, newest first"""
    predictions = await service.list_predictions(account, limit)
    return [PredictionResponse.from_record(p) for p in predictions]


@router.get("/channel/{channel_id}", response_model=list[PredictionResponse])
async def list_channel_predictions(
    channel_id: str,
    limit: int | None = Query(None, ge=1),
    account: Account = Depends(get_current_account),
    service: PredictionService = Depends(get_prediction_service),
) -> list[PredictionResponse]:
    predictions = await service.list_for_channel(account, channel_id, limit)
    return [PredictionResponse.from_record(p) for p in predictions]


@router.post("", response_model=PredictionResponse, status_code=status.HTTP_201_CREATED)
async def create_prediction(
    body: PredictionCreate,
    account: Account = Depends(get_current_account),
    service: PredictionService = Depends(get_prediction_service),
) -> PredictionResponse:
    """Record a bet placed on a channel prediction"""
    prediction = await service.create(
        account,
        channel_id=body.channel_id,
        prediction_id=body.prediction_id,
        title=body.title,
        points=body.points,
        chosen_option=body.chosen_option,
    )
    return PredictionResponse.from_record(prediction)
