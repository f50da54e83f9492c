"""Storage contract shared by the in-memory and PostgreSQL backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from shared.models import Account, Activity, Channel, NewActivity, Prediction, UserSettings


class UniqueViolation(Exception):
    """Raised when an insert would break a natural-key uniqueness rule."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} already exists: {key}")
        self.entity = entity
        self.key = key


class Storage(ABC):
    """Async storage for accounts, channels, predictions, activities and settings.

    Read methods return ``None`` (or an empty list) for missing records and never
    raise for absence. Every write is atomic: any ``activities`` passed alongside
    a write are appended in the same step, or not at all.
    """

    backend: str = "abstract"

    # ==================== Accounts ====================

    @abstractmethod
    async def create_account(
        self,
        username: str,
        password_hash: str,
        *,
        default_settings: Mapping[str, Any] | None = None,
    ) -> Account:
        """Insert an account (and its settings row when *default_settings* is given)."""

    @abstractmethod
    async def get_account(self, account_id: int) -> Account | None: ...

    @abstractmethod
    async def get_account_by_username(self, username: str) -> Account | None: ...

    @abstractmethod
    async def get_account_by_twitch_id(self, twitch_id: str) -> Account | None: ...

    @abstractmethod
    async def update_account(self, account_id: int, **fields: Any) -> Account | None: ...

    # ==================== Channels ====================

    @abstractmethod
    async def list_channels(self, owner_id: int) -> list[Channel]: ...

    @abstractmethod
    async def get_channel(self, channel_pk: int) -> Channel | None: ...

    @abstractmethod
    async def get_channel_by_owner_and_channel_id(
        self, owner_id: int, channel_id: str
    ) -> Channel | None: ...

    @abstractmethod
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
        """Insert a channel. Raises ``UniqueViolation`` for a duplicate (owner, channel_id)."""

    @abstractmethod
    async def update_channel(self, channel_pk: int, **fields: Any) -> Channel | None: ...

    @abstractmethod
    async def increment_channel_counters(
        self,
        channel_pk: int,
        *,
        points: int = 0,
        watchtime: int = 0,
        activities: Sequence[NewActivity] = (),
    ) -> Channel | None:
        """Add to the points / watchtime counters and bump their timestamps."""

    @abstractmethod
    async def delete_channel(
        self, channel_pk: int, *, activities: Sequence[NewActivity] = ()
    ) -> bool: ...

    # ==================== Predictions ====================

    @abstractmethod
    async def list_predictions(self, owner_id: int, limit: int | None = None) -> list[Prediction]:
        """Newest first."""

    @abstractmethod
    async def list_predictions_by_channel(
        self, owner_id: int, channel_id: str, limit: int | None = None
    ) -> list[Prediction]:
        """Newest first."""

    @abstractmethod
    async def get_prediction(self, prediction_pk: int) -> Prediction | None: ...

    @abstractmethod
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
    ) -> Prediction: ...

    @abstractmethod
    async def update_prediction(self, prediction_pk: int, **fields: Any) -> Prediction | None: ...

    @abstractmethod
    async def settle_prediction(
        self,
        prediction_pk: int,
        result: str,
        *,
        outcome: str | None = None,
        points_won: int = 0,
        activities: Sequence[NewActivity] = (),
    ) -> Prediction | None:
        """Resolve a pending prediction and update the owner's channel counters.

        Returns ``None`` when no *pending* prediction with that id exists.
        """

    # ==================== Activities ====================

    @abstractmethod
    async def create_activity(self, activity: NewActivity) -> Activity: ...

    @abstractmethod
    async def list_activities(self, owner_id: int, limit: int | None = None) -> list[Activity]:
        """Newest first."""

    # ==================== Settings ====================

    @abstractmethod
    async def get_settings(self, owner_id: int) -> UserSettings | None: ...

    @abstractmethod
    async def create_settings(self, owner_id: int, **fields: Any) -> UserSettings:
        """Insert a settings row. Raises ``UniqueViolation`` if the owner already has one."""

    @abstractmethod
    async def update_settings(self, owner_id: int, **fields: Any) -> UserSettings | None: ...

    # ==================== Lifecycle ====================

    async def check_health(self) -> bool:
        return True

    async def close(self) -> None:
        return None
