"""In-process storage backend.

Each table is a dict keyed by a monotonically assigned id. Writes hold the
asyncio locks of every table they touch, always acquired in ``_LOCK_ORDER``,
so a read-modify-write is never interleaved with another one.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import fields as dataclass_fields
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, TypeVar

from shared.models import Account, Activity, Channel, NewActivity, Prediction, UserSettings
from shared.models.prediction import RESULT_PENDING, RESULT_WON

from .base import Storage, UniqueViolation

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LOCK_ORDER = ("accounts", "settings", "channels", "predictions", "activities")


def _now() -> datetime:
    return datetime.now(UTC)


def _newest_first(records: Iterable[T], limit: int | None) -> list[T]:
    ordered = sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)  # type: ignore[attr-defined]
    return ordered[:limit] if limit else ordered


def _check_fields(model: type, values: Mapping[str, Any], protected: set[str]) -> None:
    allowed = {f.name for f in dataclass_fields(model)} - protected
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Cannot update {model.__name__} fields: {', '.join(sorted(unknown))}")


class MemoryStorage(Storage):
    """Dict-backed storage living for the lifetime of the process."""

    backend = "memory"

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._channels: dict[int, Channel] = {}
        self._predictions: dict[int, Prediction] = {}
        self._activities: dict[int, Activity] = {}
        self._settings: dict[int, UserSettings] = {}

        self._ids = {table: itertools.count(1) for table in _LOCK_ORDER}
        self._locks = {table: asyncio.Lock() for table in _LOCK_ORDER}

    @asynccontextmanager
    async def _locked(self, *tables: str) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for table in sorted(set(tables), key=_LOCK_ORDER.index):
                await stack.enter_async_context(self._locks[table])
            yield

    def _append_activities(self, activities: Sequence[NewActivity]) -> list[Activity]:
        now = _now()
        appended: list[Activity] = []
        for draft in activities:
            activity_id = next(self._ids["activities"])
            activity = Activity(
                id=activity_id,
                owner_id=draft.owner_id,
                type=draft.type,
                description=draft.description,
                channel_id=draft.channel_id,
                channel_name=draft.channel_name,
                points=draft.points,
                metadata=dict(draft.metadata) if draft.metadata is not None else None,
                created_at=now,
            )
            self._activities[activity_id] = activity
            appended.append(activity)
        return appended

    def _insert_settings(self, owner_id: int, values: Mapping[str, Any]) -> UserSettings:
        if any(s.owner_id == owner_id for s in self._settings.values()):
            raise UniqueViolation("settings", str(owner_id))
        _check_fields(UserSettings, values, {"id", "owner_id"})
        settings_id = next(self._ids["settings"])
        row = UserSettings(id=settings_id, owner_id=owner_id, **values)
        self._settings[settings_id] = row
        return row

    # ==================== Accounts ====================

    async def create_account(
        self,
        username: str,
        password_hash: str,
        *,
        default_settings: Mapping[str, Any] | None = None,
    ) -> Account:
        async with self._locked("accounts", "settings"):
            if any(a.username == username for a in self._accounts.values()):
                raise UniqueViolation("account", username)
            account_id = next(self._ids["accounts"])
            account = Account(id=account_id, username=username, password_hash=password_hash)
            self._accounts[account_id] = account
            if default_settings is not None:
                self._insert_settings(account_id, default_settings)
            return replace(account)

    async def get_account(self, account_id: int) -> Account | None:
        account = self._accounts.get(account_id)
        return replace(account) if account else None

    async def get_account_by_username(self, username: str) -> Account | None:
        for account in self._accounts.values():
            if account.username == username:
                return replace(account)
        return None

    async def get_account_by_twitch_id(self, twitch_id: str) -> Account | None:
        for account in self._accounts.values():
            if account.twitch_id == twitch_id:
                return replace(account)
        return None

    async def update_account(self, account_id: int, **fields: Any) -> Account | None:
        _check_fields(Account, fields, {"id"})
        async with self._locked("accounts"):
            account = self._accounts.get(account_id)
            if account is None:
                return None
            if "username" in fields and any(
                a.username == fields["username"] and a.id != account_id
                for a in self._accounts.values()
            ):
                raise UniqueViolation("account", fields["username"])
            updated = replace(account, **fields)
            self._accounts[account_id] = updated
            return replace(updated)

    # ==================== Channels ====================

    async def list_channels(self, owner_id: int) -> list[Channel]:
        return [replace(c) for c in self._channels.values() if c.owner_id == owner_id]

    async def get_channel(self, channel_pk: int) -> Channel | None:
        channel = self._channels.get(channel_pk)
        return replace(channel) if channel else None

    async def get_channel_by_owner_and_channel_id(
        self, owner_id: int, channel_id: str
    ) -> Channel | None:
        for channel in self._channels.values():
            if channel.owner_id == owner_id and channel.channel_id == channel_id:
                return replace(channel)
        return None

    async def create_channel(
        self,
        owner_id: int,
        channel_id: str,
        channel_name: str,
        *,
        auto_farming: bool = True,
        auto_watchtime: bool = True,
        auto_predictions: bool = True,
        activities: Sequence[NewActivity] = (),
    ) -> Channel:
        async with self._locked("channels", "activities"):
            if any(
                c.owner_id == owner_id and c.channel_id == channel_id
                for c in self._channels.values()
            ):
                raise UniqueViolation("channel", f"{owner_id}:{channel_id}")
            now = _now()
            channel_pk = next(self._ids["channels"])
            channel = Channel(
                id=channel_pk,
                owner_id=owner_id,
                channel_id=channel_id,
                channel_name=channel_name,
                auto_farming=auto_farming,
                auto_watchtime=auto_watchtime,
                auto_predictions=auto_predictions,
                last_points_update=now,
                last_watchtime_update=now,
            )
            self._channels[channel_pk] = channel
            self._append_activities(activities)
            return replace(channel)

    async def update_channel(self, channel_pk: int, **fields: Any) -> Channel | None:
        _check_fields(Channel, fields, {"id", "owner_id"})
        async with self._locked("channels"):
            channel = self._channels.get(channel_pk)
            if channel is None:
                return None
            if "channel_id" in fields and any(
                c.owner_id == channel.owner_id
                and c.channel_id == fields["channel_id"]
                and c.id != channel_pk
                for c in self._channels.values()
            ):
                raise UniqueViolation("channel", f"{channel.owner_id}:{fields['channel_id']}")
            updated = replace(channel, **fields)
            self._channels[channel_pk] = updated
            return replace(updated)

    async def increment_channel_counters(
        self,
        channel_pk: int,
        *,
        points: int = 0,
        watchtime: int = 0,
        activities: Sequence[NewActivity] = (),
    ) -> Channel | None:
        async with self._locked("channels", "activities"):
            channel = self._channels.get(channel_pk)
            if channel is None:
                return None
            now = _now()
            changes: dict[str, Any] = {}
            if points:
                changes["total_points"] = channel.total_points + points
                changes["last_points_update"] = now
            if watchtime:
                changes["total_watchtime"] = channel.total_watchtime + watchtime
                changes["last_watchtime_update"] = now
            updated = replace(channel, **changes)
            self._channels[channel_pk] = updated
            self._append_activities(activities)
            return replace(updated)

    async def delete_channel(
        self, channel_pk: int, *, activities: Sequence[NewActivity] = ()
    ) -> bool:
        async with self._locked("channels", "activities"):
            if self._channels.pop(channel_pk, None) is None:
                return False
            self._append_activities(activities)
            return True

    # ==================== Predictions ====================

    async def list_predictions(self, owner_id: int, limit: int | None = None) -> list[Prediction]:
        rows = (replace(p) for p in self._predictions.values() if p.owner_id == owner_id)
        return _newest_first(rows, limit)

    async def list_predictions_by_channel(
        self, owner_id: int, channel_id: str, limit: int | None = None
    ) -> list[Prediction]:
        rows = (
            replace(p)
            for p in self._predictions.values()
            if p.owner_id == owner_id and p.channel_id == channel_id
        )
        return _newest_first(rows, limit)

    async def get_prediction(self, prediction_pk: int) -> Prediction | None:
        prediction = self._predictions.get(prediction_pk)
        return replace(prediction) if prediction else None

    async def create_prediction(
        self,
        owner_id: int,
        channel_id: str,
        prediction_id: str,
        title: str,
        points: int,
        chosen_option: str,
        *,
        activities: Sequence[NewActivity] = (),
    ) -> Prediction:
        async with self._locked("predictions", "activities"):
            prediction_pk = next(self._ids["predictions"])
            prediction = Prediction(
                id=prediction_pk,
                owner_id=owner_id,
                channel_id=channel_id,
                prediction_id=prediction_id,
                title=title,
                points=points,
                chosen_option=chosen_option,
                created_at=_now(),
            )
            self._predictions[prediction_pk] = prediction
            self._append_activities(activities)
            return replace(prediction)

    async def update_prediction(self, prediction_pk: int, **fields: Any) -> Prediction | None:
        _check_fields(Prediction, fields, {"id", "owner_id", "created_at"})
        async with self._locked("predictions"):
            prediction = self._predictions.get(prediction_pk)
            if prediction is None:
                return None
            updated = replace(prediction, **fields)
            self._predictions[prediction_pk] = updated
            return replace(updated)

    async def settle_prediction(
        self,
        prediction_pk: int,
        result: str,
        *,
        outcome: str | None = None,
        points_won: int = 0,
        activities: Sequence[NewActivity] = (),
    ) -> Prediction | None:
        async with self._locked("channels", "predictions", "activities"):
            prediction = self._predictions.get(prediction_pk)
            if prediction is None or prediction.result != RESULT_PENDING:
                return None
            settled = replace(prediction, result=result, outcome=outcome, points_won=points_won)
            self._predictions[prediction_pk] = settled

            for channel in self._channels.values():
                if (
                    channel.owner_id == prediction.owner_id
                    and channel.channel_id == prediction.channel_id
                ):
                    if result == RESULT_WON:
                        changes: dict[str, Any] = {"predictions_won": channel.predictions_won + 1}
                        if points_won:
                            changes["total_points"] = channel.total_points + points_won
                            changes["last_points_update"] = _now()
                    else:
                        changes = {"predictions_lost": channel.predictions_lost + 1}
                    self._channels[channel.id] = replace(channel, **changes)
                    break

            self._append_activities(activities)
            return replace(settled)

    # ==================== Activities ====================

    async def create_activity(self, activity: NewActivity) -> Activity:
        async with self._locked("activities"):
            (created,) = self._append_activities([activity])
            return replace(created)

    async def list_activities(self, owner_id: int, limit: int | None = None) -> list[Activity]:
        rows = (replace(a) for a in self._activities.values() if a.owner_id == owner_id)
        return _newest_first(rows, limit)

    # ==================== Settings ====================

    async def get_settings(self, owner_id: int) -> UserSettings | None:
        for row in self._settings.values():
            if row.owner_id == owner_id:
                return replace(row)
        return None

    async def create_settings(self, owner_id: int, **fields: Any) -> UserSettings:
        async with self._locked("settings"):
            return replace(self._insert_settings(owner_id, fields))

    async def update_settings(self, owner_id: int, **fields: Any) -> UserSettings | None:
        _check_fields(UserSettings, fields, {"id", "owner_id"})
        async with self._locked("settings"):
            for settings_id, row in self._settings.items():
                if row.owner_id == owner_id:
                    updated = replace(row, **fields)
                    self._settings[settings_id] = updated
                    return replace(updated)
            return None
