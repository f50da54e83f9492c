"""Account registration and credential checks"""

import logging

from shared.models import DEFAULT_SETTINGS, Account
from shared.storage import Storage, UniqueViolation

from core.errors import DuplicateUsername, InvalidCredentials

from .auth_service import hash_password, verify_password

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    async def register(self, username: str, password: str) -> Account:
        """Create an account together with its default settings row."""
        if await self.storage.get_account_by_username(username):
            raise DuplicateUsername()
        try:
            account = await self.storage.create_account(
                username,
                hash_password(password),
                default_settings=DEFAULT_SETTINGS,
            )
        except UniqueViolation:
            # Lost a race with a concurrent registration
            raise DuplicateUsername() from None

        logger.info(f"Registered account {account.id} ({account.username})")
        return account

    async def authenticate(self, username: str, password: str) -> Account:
        account = await self.storage.get_account_by_username(username)
        if account is None or not verify_password(password, account.password_hash):
            logger.warning(f"Failed login attempt for '{username}'")
            raise InvalidCredentials()
        return account
