"""Prediction history service"""

import logging

from shared.models import Account, NewActivity, Prediction
from shared.models.activity import (
    ACTIVITY_PREDICTION,
    ACTIVITY_PREDICTION_LOST,
    ACTIVITY_PREDICTION_WON,
)
from shared.models.prediction import RESULT_LOST, RESULT_WON
from shared.storage import Storage

from core.errors import PredictionAlreadySettled

from .access import ensure_owned
from .activity_service import ActivityService

logger = logging.getLogger(__name__)


class PredictionService:
    def __init__(self, storage: Storage, activities: ActivityService) -> None:
        self.storage = storage
        self.activities = activities

    async def list_predictions(self, account: Account, limit: int | None = None) -> list[Prediction]:
        return await self.storage.list_predictions(account.id, limit)

    async def list_for_channel(
        self, account: Account, channel_id: str, limit: int | None = None
    ) -> list[Prediction]:
        return await self.storage.list_predictions_by_channel(account.id, channel_id, limit)

    async def create(
        self,
        account: Account,
        *,
        channel_id: str,
        prediction_id: str,
        title: str,
        points: int,
        chosen_option: str,
    ) -> Prediction:
        """Record a bet. The channel does not have to be tracked."""
        if points < 1:
            raise ValueError("points must be at least 1")

        channel = await self.storage.get_channel_by_owner_and_channel_id(account.id, channel_id)
        activity = NewActivity(
            owner_id=account.id,
            type=ACTIVITY_PREDICTION,
            description=f'Bet {points} points on "{chosen_option}" for "{title}"',
            channel_id=channel_id,
            channel_name=channel.channel_name if channel else None,
            points=-points,
        )
        prediction = await self.storage.create_prediction(
            account.id,
            channel_id,
            prediction_id,
            title,
            points,
            chosen_option,
            activities=[activity],
        )

        logger.debug(f"Account {account.id} bet {points} on prediction {prediction_id}")
        await self.activities.notify(account.id, [activity])
        return prediction

    async def settle(
        self,
        account: Account,
        prediction_pk: int,
        result: str,
        outcome: str | None = None,
        points_won: int = 0,
    ) -> Prediction:
        """Resolve a pending prediction as won or lost. Not exposed over HTTP."""
        if result not in (RESULT_WON, RESULT_LOST):
            raise ValueError(f"result must be '{RESULT_WON}' or '{RESULT_LOST}'")
        if points_won < 0:
            raise ValueError("points_won must be non-negative")

        prediction = ensure_owned(
            await self.storage.get_prediction(prediction_pk), account, "Prediction"
        )
        if prediction.is_settled:
            raise PredictionAlreadySettled()

        channel = await self.storage.get_channel_by_owner_and_channel_id(
            account.id, prediction.channel_id
        )
        channel_name = channel.channel_name if channel else None
        if result == RESULT_WON:
            activity = NewActivity(
                owner_id=account.id,
                type=ACTIVITY_PREDICTION_WON,
                description=f'Won {points_won} points on "{prediction.title}"',
                channel_id=prediction.channel_id,
                channel_name=channel_name,
                points=points_won,
            )
        else:
            activity = NewActivity(
                owner_id=account.id,
                type=ACTIVITY_PREDICTION_LOST,
                description=f'Lost {prediction.points} points on "{prediction.title}"',
                channel_id=prediction.channel_id,
                channel_name=channel_name,
            )

        settled = await self.storage.settle_prediction(
            prediction_pk,
            result,
            outcome=outcome,
            points_won=points_won if result == RESULT_WON else 0,
            activities=[activity],
        )
        if settled is None:
            # Settled concurrently between the read and the write
            raise PredictionAlreadySettled()

        logger.info(f"Prediction {prediction_pk} settled as {result} (account {account.id})")
        await self.activities.notify(account.id, [activity])
        return settled
