"""Per-account prediction and notification settings"""

import logging
from typing import Any

from shared.models import DEFAULT_SETTINGS, Account, UserSettings
from shared.storage import Storage, UniqueViolation

from core.errors import NotFound

logger = logging.getLogger(__name__)


class SettingsService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    async def get(self, account: Account) -> UserSettings:
        settings = await self.storage.get_settings(account.id)
        if settings is None:
            raise NotFound("Settings not found")
        return settings

    async def upsert(self, account: Account, changes: dict[str, Any]) -> UserSettings:
        """Merge *changes* into the existing row, or create one from the defaults."""
        if await self.storage.get_settings(account.id) is None:
            try:
                created = await self.storage.create_settings(
                    account.id, **{**DEFAULT_SETTINGS, **changes}
                )
                logger.debug(f"Created settings for account {account.id}")
                return created
            except UniqueViolation:
                pass

        updated = await self.storage.update_settings(account.id, **changes)
        if updated is None:
            raise NotFound("Settings not found")
        return updated
