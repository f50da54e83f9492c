"""PostgreSQL storage backend (asyncpg).

Schema lives in ``shared/migrations/versions``. Multi-table writes run inside a
single transaction so an entity change and its activity rows commit together.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

import asyncpg

from shared.models import Account, Activity, Channel, NewActivity, Prediction, UserSettings
from shared.models.prediction import RESULT_WON

from .base import Storage, UniqueViolation

logger = logging.getLogger(__name__)

_ACCOUNT_COLUMNS = (
    "id, username, password_hash, twitch_id, twitch_username, "
    "twitch_token, twitch_refresh_token, twitch_token_expiry"
)
_CHANNEL_COLUMNS = (
    "id, owner_id, channel_id, channel_name, auto_farming, auto_watchtime, auto_predictions, "
    "total_points, total_watchtime, predictions_won, predictions_lost, "
    "last_points_update, last_watchtime_update"
)
_PREDICTION_COLUMNS = (
    "id, owner_id, channel_id, prediction_id, title, outcome, points, "
    "chosen_option, result, points_won, created_at"
)
_ACTIVITY_COLUMNS = (
    "id, owner_id, channel_id, channel_name, type, description, points, metadata, created_at"
)
_SETTINGS_COLUMNS = (
    "id, owner_id, risk_level, max_points_per_prediction, use_chat_sentiment, "
    "use_historical_outcomes, use_streamer_performance, use_global_patterns, "
    "notifications_enabled, webhook_url"
)


def _columns(column_list: str) -> set[str]:
    return {c.strip() for c in column_list.split(",")}


_UPDATABLE = {
    "accounts": _columns(_ACCOUNT_COLUMNS) - {"id"},
    "channels": _columns(_CHANNEL_COLUMNS) - {"id", "owner_id"},
    "predictions": _columns(_PREDICTION_COLUMNS) - {"id", "owner_id", "created_at"},
    "user_settings": _columns(_SETTINGS_COLUMNS) - {"id", "owner_id"},
}


def _assignments(table: str, values: Mapping[str, Any], start: int) -> str:
    """Build ``col = $n`` pairs for whitelisted columns of *table*."""
    unknown = set(values) - _UPDATABLE[table]
    if unknown:
        raise ValueError(f"Cannot update {table} columns: {', '.join(sorted(unknown))}")
    return ", ".join(f"{name} = ${i}" for i, name in enumerate(values, start=start))


async def init_connection(conn: asyncpg.Connection) -> None:
    """Decode JSONB columns (activities.metadata) to Python objects."""
    await conn.set_type_codec(
        "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
    )


async def _insert_activities(conn: asyncpg.Connection, activities: Sequence[NewActivity]) -> None:
    if not activities:
        return
    await conn.executemany(
        """
        INSERT INTO activities (owner_id, channel_id, channel_name, type, description, points, metadata)
        VALUES ($1, $2, $3, $4, $5, $6, $7)
        """,
        [
            (a.owner_id, a.channel_id, a.channel_name, a.type, a.description, a.points, a.metadata)
            for a in activities
        ],
    )


class PostgresStorage(Storage):
    """Storage backed by an asyncpg pool owned by ``DatabaseManager``."""

    backend = "postgres"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Accounts ====================

    async def create_account(
        self,
        username: str,
        password_hash: str,
        *,
        default_settings: Mapping[str, Any] | None = None,
    ) -> Account:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                try:
                    row = await conn.fetchrow(
                        f"INSERT INTO accounts (username, password_hash) VALUES ($1, $2) "
                        f"RETURNING {_ACCOUNT_COLUMNS}",
                        username,
                        password_hash,
                    )
                except asyncpg.UniqueViolationError:
                    raise UniqueViolation("account", username) from None
                if default_settings is not None:
                    await self._insert_settings(conn, row["id"], default_settings)
        return Account(**dict(row))

    async def get_account(self, account_id: int) -> Account | None:
        row = await self.pool.fetchrow(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = $1", account_id
        )
        return Account(**dict(row)) if row else None

    async def get_account_by_username(self, username: str) -> Account | None:
        row = await self.pool.fetchrow(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE username = $1", username
        )
        return Account(**dict(row)) if row else None

    async def get_account_by_twitch_id(self, twitch_id: str) -> Account | None:
        row = await self.pool.fetchrow(
            f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE twitch_id = $1 LIMIT 1", twitch_id
        )
        return Account(**dict(row)) if row else None

    async def update_account(self, account_id: int, **fields: Any) -> Account | None:
        if not fields:
            return await self.get_account(account_id)
        try:
            row = await self.pool.fetchrow(
                f"UPDATE accounts SET {_assignments('accounts', fields, 2)} "
                f"WHERE id = $1 RETURNING {_ACCOUNT_COLUMNS}",
                account_id,
                *fields.values(),
            )
        except asyncpg.UniqueViolationError:
            raise UniqueViolation("account", str(fields.get("username"))) from None
        return Account(**dict(row)) if row else None

    # ==================== Channels ====================

    async def list_channels(self, owner_id: int) -> list[Channel]:
        rows = await self.pool.fetch(
            f"SELECT {_CHANNEL_COLUMNS} FROM channels WHERE owner_id = $1 ORDER BY id", owner_id
        )
        return [Channel(**dict(r)) for r in rows]

    async def get_channel(self, channel_pk: int) -> Channel | None:
        row = await self.pool.fetchrow(
            f"SELECT {_CHANNEL_COLUMNS} FROM channels WHERE id = $1", channel_pk
        )
        return Channel(**dict(row)) if row else None

    async def get_channel_by_owner_and_channel_id(
        self, owner_id: int, channel_id: str
    ) -> Channel | None:
        row = await self.pool.fetchrow(
            f"SELECT {_CHANNEL_COLUMNS} FROM channels WHERE owner_id = $1 AND channel_id = $2",
            owner_id,
            channel_id,
        )
        return Channel(**dict(row)) if row else None

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
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                try:
                    row = await conn.fetchrow(
                        f"""
                        INSERT INTO channels (owner_id, channel_id, channel_name,
                                              auto_farming, auto_watchtime, auto_predictions)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        RETURNING {_CHANNEL_COLUMNS}
                        """,
                        owner_id,
                        channel_id,
                        channel_name,
                        auto_farming,
                        auto_watchtime,
                        auto_predictions,
                    )
                except asyncpg.UniqueViolationError:
                    raise UniqueViolation("channel", f"{owner_id}:{channel_id}") from None
                await _insert_activities(conn, activities)
        return Channel(**dict(row))

    async def update_channel(self, channel_pk: int, **fields: Any) -> Channel | None:
        if not fields:
            return await self.get_channel(channel_pk)
        try:
            row = await self.pool.fetchrow(
                f"UPDATE channels SET {_assignments('channels', fields, 2)} "
                f"WHERE id = $1 RETURNING {_CHANNEL_COLUMNS}",
                channel_pk,
                *fields.values(),
            )
        except asyncpg.UniqueViolationError:
            raise UniqueViolation("channel", str(fields.get("channel_id"))) from None
        return Channel(**dict(row)) if row else None

    async def increment_channel_counters(
        self,
        channel_pk: int,
        *,
        points: int = 0,
        watchtime: int = 0,
        activities: Sequence[NewActivity] = (),
    ) -> Channel | None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    UPDATE channels SET
                        total_points          = total_points + $2,
                        last_points_update    = CASE WHEN $2 <> 0 THEN NOW()
                                                     ELSE last_points_update END,
                        total_watchtime       = total_watchtime + $3,
                        last_watchtime_update = CASE WHEN $3 <> 0 THEN NOW()
                                                     ELSE last_watchtime_update END
                    WHERE id = $1
                    RETURNING {_CHANNEL_COLUMNS}
                    """,
                    channel_pk,
                    points,
                    watchtime,
                )
                if row is None:
                    return None
                await _insert_activities(conn, activities)
        return Channel(**dict(row))

    async def delete_channel(
        self, channel_pk: int, *, activities: Sequence[NewActivity] = ()
    ) -> bool:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                result = await conn.execute("DELETE FROM channels WHERE id = $1", channel_pk)
                if result != "DELETE 1":
                    return False
                await _insert_activities(conn, activities)
        return True

    # ==================== Predictions ====================

    async def list_predictions(self, owner_id: int, limit: int | None = None) -> list[Prediction]:
        rows = await self.pool.fetch(
            f"SELECT {_PREDICTION_COLUMNS} FROM predictions WHERE owner_id = $1 "
            "ORDER BY created_at DESC, id DESC LIMIT $2",
            owner_id,
            limit,
        )
        return [Prediction(**dict(r)) for r in rows]

    async def list_predictions_by_channel(
        self, owner_id: int, channel_id: str, limit: int | None = None
    ) -> list[Prediction]:
        rows = await self.pool.fetch(
            f"SELECT {_PREDICTION_COLUMNS} FROM predictions "
            "WHERE owner_id = $1 AND channel_id = $2 "
            "ORDER BY created_at DESC, id DESC LIMIT $3",
            owner_id,
            channel_id,
            limit,
        )
        return [Prediction(**dict(r)) for r in rows]

    async def get_prediction(self, prediction_pk: int) -> Prediction | None:
        row = await self.pool.fetchrow(
            f"SELECT {_PREDICTION_COLUMNS} FROM predictions WHERE id = $1", prediction_pk
        )
        return Prediction(**dict(row)) if row else None

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
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO predictions (owner_id, channel_id, prediction_id, title,
                                             points, chosen_option)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING {_PREDICTION_COLUMNS}
                    """,
                    owner_id,
                    channel_id,
                    prediction_id,
                    title,
                    points,
                    chosen_option,
                )
                await _insert_activities(conn, activities)
        return Prediction(**dict(row))

    async def update_prediction(self, prediction_pk: int, **fields: Any) -> Prediction | None:
        if not fields:
            return await self.get_prediction(prediction_pk)
        row = await self.pool.fetchrow(
            f"UPDATE predictions SET {_assignments('predictions', fields, 2)} "
            f"WHERE id = $1 RETURNING {_PREDICTION_COLUMNS}",
            prediction_pk,
            *fields.values(),
        )
        return Prediction(**dict(row)) if row else None

    async def settle_prediction(
        self,
        prediction_pk: int,
        result: str,
        *,
        outcome: str | None = None,
        points_won: int = 0,
        activities: Sequence[NewActivity] = (),
    ) -> Prediction | None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    UPDATE predictions SET result = $2, outcome = $3, points_won = $4
                    WHERE id = $1 AND result = 'pending'
                    RETURNING {_PREDICTION_COLUMNS}
                    """,
                    prediction_pk,
                    result,
                    outcome,
                    points_won,
                )
                if row is None:
                    return None

                if result == RESULT_WON:
                    await conn.execute(
                        """
                        UPDATE channels SET
                            predictions_won    = predictions_won + 1,
                            total_points       = total_points + $3,
                            last_points_update = CASE WHEN $3 <> 0 THEN NOW()
                                                      ELSE last_points_update END
                        WHERE owner_id = $1 AND channel_id = $2
                        """,
                        row["owner_id"],
                        row["channel_id"],
                        points_won,
                    )
                else:
                    await conn.execute(
                        "UPDATE channels SET predictions_lost = predictions_lost + 1 "
                        "WHERE owner_id = $1 AND channel_id = $2",
                        row["owner_id"],
                        row["channel_id"],
                    )
                await _insert_activities(conn, activities)
        return Prediction(**dict(row))

    # ==================== Activities ====================

    async def create_activity(self, activity: NewActivity) -> Activity:
        row = await self.pool.fetchrow(
            f"""
            INSERT INTO activities (owner_id, channel_id, channel_name, type, description, points, metadata)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING {_ACTIVITY_COLUMNS}
            """,
            activity.owner_id,
            activity.channel_id,
            activity.channel_name,
            activity.type,
            activity.description,
            activity.points,
            activity.metadata,
        )
        return Activity(**dict(row))

    async def list_activities(self, owner_id: int, limit: int | None = None) -> list[Activity]:
        rows = await self.pool.fetch(
            f"SELECT {_ACTIVITY_COLUMNS} FROM activities WHERE owner_id = $1 "
            "ORDER BY created_at DESC, id DESC LIMIT $2",
            owner_id,
            limit,
        )
        return [Activity(**dict(r)) for r in rows]

    # ==================== Settings ====================

    @staticmethod
    async def _insert_settings(
        conn: asyncpg.Connection, owner_id: int, values: Mapping[str, Any]
    ) -> asyncpg.Record:
        unknown = set(values) - _UPDATABLE["user_settings"]
        if unknown:
            raise ValueError(f"Unknown settings columns: {', '.join(sorted(unknown))}")
        names = ["owner_id", *values]
        placeholders = ", ".join(f"${i}" for i in range(1, len(names) + 1))
        try:
            return await conn.fetchrow(
                f"INSERT INTO user_settings ({', '.join(names)}) VALUES ({placeholders}) "
                f"RETURNING {_SETTINGS_COLUMNS}",
                owner_id,
                *values.values(),
            )
        except asyncpg.UniqueViolationError:
            raise UniqueViolation("settings", str(owner_id)) from None

    async def get_settings(self, owner_id: int) -> UserSettings | None:
        row = await self.pool.fetchrow(
            f"SELECT {_SETTINGS_COLUMNS} FROM user_settings WHERE owner_id = $1", owner_id
        )
        return UserSettings(**dict(row)) if row else None

    async def create_settings(self, owner_id: int, **fields: Any) -> UserSettings:
        async with self.pool.acquire() as conn:
            row = await self._insert_settings(conn, owner_id, fields)
        return UserSettings(**dict(row))

    async def update_settings(self, owner_id: int, **fields: Any) -> UserSettings | None:
        if not fields:
            return await self.get_settings(owner_id)
        row = await self.pool.fetchrow(
            f"UPDATE user_settings SET {_assignments('user_settings', fields, 2)} "
            f"WHERE owner_id = $1 RETURNING {_SETTINGS_COLUMNS}",
            owner_id,
            *fields.values(),
        )
        return UserSettings(**dict(row)) if row else None

    # ==================== Lifecycle ====================

    async def check_health(self) -> bool:
        try:
            async with self.pool.acquire(timeout=5.0) as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.warning(f"DB health check failed: {type(e).__name__}: {e}")
            return False
