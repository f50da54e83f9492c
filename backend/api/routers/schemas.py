"""Shared request/response model base and the record shapes used by several routers"""

from dataclasses import asdict
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_record(cls, record: Any):
        return cls.model_validate(asdict(record))


class MessageResponse(APIModel):
    message: str


class ChannelResponse(APIModel):
    id: int
    owner_id: int
    channel_id: str
    channel_name: str
    auto_farming: bool
    auto_watchtime: bool
    auto_predictions: bool
    total_points: int
    total_watchtime: int
    predictions_won: int
    predictions_lost: int
    last_points_update: datetime | None = None
    last_watchtime_update: datetime | None = None


class PredictionResponse(APIModel):
    id: int
    owner_id: int
    channel_id: str
    prediction_id: str
    title: str
    points: int
    chosen_option: str
    outcome: str | None = None
    result: str
    points_won: int
    created_at: datetime | None = None
