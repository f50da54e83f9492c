"""Channel management service.

Storage calls go through ``Storage``; this layer adds ownership checks,
activity bookkeeping and API-shaped aggregates.
"""

import logging
from typing import Any

from shared.models import Account, Channel, NewActivity
from shared.models.activity import ACTIVITY_CHANNEL, ACTIVITY_POINTS, ACTIVITY_WATCHTIME
from shared.models.channel import AUTOMATION_FLAGS
from shared.models.prediction import RESULT_WON
from shared.storage import Storage, UniqueViolation

from core.errors import DuplicateChannel, NotFound

from .access import ensure_owned
from .activity_service import ActivityService
from .rates import round_half_up, win_rate

logger = logging.getLogger(__name__)

# Fields a caller may change through PUT /api/channels/{id}; counters are not among them.
EDITABLE_FIELDS = frozenset({"channel_name", *AUTOMATION_FLAGS})


class ChannelService:
    """API-facing channel operations, all scoped to the calling account."""

    def __init__(self, storage: Storage, activities: ActivityService) -> None:
        self.storage = storage
        self.activities = activities

    # ==================== Reads ====================

    async def list_channels(self, account: Account) -> list[Channel]:
        return await self.storage.list_channels(account.id)

    async def get_channel(self, account: Account, channel_pk: int) -> Channel:
        return ensure_owned(await self.storage.get_channel(channel_pk), account, "Channel")

    async def resolve(self, account: Account, channel_id: str) -> Channel:
        """Find the caller's channel by its Twitch channel id."""
        channel = await self.storage.get_channel_by_owner_and_channel_id(account.id, channel_id)
        if channel is None:
            raise NotFound("Channel not found")
        return channel

    async def get_stats(self, account: Account, channel_id: str) -> dict[str, Any]:
        """Counters plus a win rate over every prediction placed on the channel."""
        channel = await self.resolve(account, channel_id)
        predictions = await self.storage.list_predictions_by_channel(account.id, channel_id)
        won = sum(1 for p in predictions if p.result == RESULT_WON)

        return {
            "total_points": channel.total_points,
            "total_watchtime": channel.total_watchtime,
            "predictions_won": channel.predictions_won,
            "predictions_lost": channel.predictions_lost,
            "win_rate": round_half_up(win_rate(won, len(predictions)), 1),
            "last_points_update": channel.last_points_update,
            "last_watchtime_update": channel.last_watchtime_update,
        }

    # ==================== Writes ====================

    async def add_channel(
        self,
        account: Account,
        channel_id: str,
        channel_name: str,
        *,
        auto_farming: bool = True,
        auto_watchtime: bool = True,
        auto_predictions: bool = True,
    ) -> Channel:
        if await self.storage.get_channel_by_owner_and_channel_id(account.id, channel_id):
            raise DuplicateChannel()

        activity = NewActivity(
            owner_id=account.id,
            type=ACTIVITY_CHANNEL,
            description=f"Added channel {channel_name}",
            channel_id=channel_id,
            channel_name=channel_name,
        )
        try:
            channel = await self.storage.create_channel(
                account.id,
                channel_id,
                channel_name,
                auto_farming=auto_farming,
                auto_watchtime=auto_watchtime,
                auto_predictions=auto_predictions,
                activities=[activity],
            )
        except UniqueViolation:
            raise DuplicateChannel() from None

        logger.info(f"Account {account.id} added channel {channel_name} ({channel_id})")
        await self.activities.notify(account.id, [activity])
        return channel

    async def update_channel(
        self, account: Account, channel_pk: int, changes: dict[str, Any]
    ) -> Channel:
        await self.get_channel(account, channel_pk)

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")

        updated = await self.storage.update_channel(channel_pk, **changes)
        if updated is None:
            raise NotFound("Channel not found")
        return updated

    async def remove_channel(self, account: Account, channel_pk: int) -> None:
        channel = await self.get_channel(account, channel_pk)

        activity = NewActivity(
            owner_id=account.id,
            type=ACTIVITY_CHANNEL,
            description=f"Removed channel {channel.channel_name}",
            channel_id=channel.channel_id,
            channel_name=channel.channel_name,
        )
        if not await self.storage.delete_channel(channel_pk, activities=[activity]):
            raise NotFound("Channel not found")

        logger.info(f"Account {account.id} removed channel {channel.channel_name}")
        await self.activities.notify(account.id, [activity])

    async def toggle_setting(
        self, account: Account, channel_id: str, flag: str, value: bool
    ) -> Channel:
        """Set exactly one automation flag on the caller's channel."""
        if flag not in AUTOMATION_FLAGS:
            raise ValueError(f"Unknown automation flag: {flag}")

        channel = await self.resolve(account, channel_id)
        updated = await self.storage.update_channel(channel.id, **{flag: value})
        if updated is None:
            raise NotFound("Channel not found")

        logger.debug(f"Channel {channel_id} {flag}={value} (account {account.id})")
        return updated

    async def record_progress(
        self,
        account: Account,
        channel_id: str,
        *,
        points: int = 0,
        watchtime_minutes: int = 0,
    ) -> Channel:
        """Trusted counter update, e.g. from an automation worker. Not exposed over HTTP."""
        if points < 0 or watchtime_minutes < 0:
            raise ValueError("points and watchtime_minutes must be non-negative")

        channel = await self.resolve(account, channel_id)
        activities: list[NewActivity] = []
        if points:
            activities.append(
                NewActivity(
                    owner_id=account.id,
                    type=ACTIVITY_POINTS,
                    description=f"Collected {points} points on {channel.channel_name}",
                    channel_id=channel.channel_id,
                    channel_name=channel.channel_name,
                    points=points,
                )
            )
        if watchtime_minutes:
            activities.append(
                NewActivity(
                    owner_id=account.id,
                    type=ACTIVITY_WATCHTIME,
                    description=f"Watched {channel.channel_name} for {watchtime_minutes} minutes",
                    channel_id=channel.channel_id,
                    channel_name=channel.channel_name,
                    metadata={"minutes": watchtime_minutes},
                )
            )

        updated = await self.storage.increment_channel_counters(
            channel.id, points=points, watchtime=watchtime_minutes, activities=activities
        )
        if updated is None:
            raise NotFound("Channel not found")

        await self.activities.notify(account.id, activities)
        return updated
