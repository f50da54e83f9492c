"""Activity log reads and post-commit notifications"""

import logging
from collections.abc import Sequence

from shared.models import Account, Activity, NewActivity
from shared.storage import Storage

from .webhook import WebhookNotifier

logger = logging.getLogger(__name__)


class ActivityService:
    def __init__(self, storage: Storage, notifier: WebhookNotifier | None = None) -> None:
        self.storage = storage
        self.notifier = notifier

    async def list_activities(self, account: Account, limit: int | None = None) -> list[Activity]:
        return await self.storage.list_activities(account.id, limit)

    async def notify(self, owner_id: int, activities: Sequence[NewActivity]) -> None:
        """Forward committed activities to the owner's webhook, if enabled.

        Best effort: never raises.
        """
        if self.notifier is None or not activities:
            return
        try:
            settings = await self.storage.get_settings(owner_id)
        except Exception as e:
            logger.warning(f"Skipping notifications for account {owner_id}: {type(e).__name__}: {e}")
            return
        if settings is None or not settings.notifications_enabled or not settings.webhook_url:
            return
        for activity in activities:
            self.notifier.dispatch(settings.webhook_url, activity.description)
