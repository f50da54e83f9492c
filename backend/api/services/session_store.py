"""Server-side session store.

Sessions expire a fixed TTL after creation; expiry is enforced by the
underlying ``cachetools.TTLCache``, which is unbounded so live sessions are
never evicted to make room for new ones. Mutating a session (e.g. storing a
pending OAuth state) does not extend its lifetime.
"""

import logging
import math
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)


@dataclass
class PendingOAuth:
    state: str
    redirect_uri: str


@dataclass
class Session:
    session_id: str
    account_id: int
    created_at: float
    pending_oauth: PendingOAuth | None = None


class SessionStore:
    def __init__(
        self,
        ttl_seconds: int = 86400,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: TTLCache = TTLCache(maxsize=math.inf, ttl=ttl_seconds, timer=timer)
        self._timer = timer

    def create(self, account_id: int) -> Session:
        session = Session(
            session_id=secrets.token_urlsafe(32),
            account_id=account_id,
            created_at=self._timer(),
        )
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def destroy(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def set_pending_oauth(self, session_id: str, state: str, redirect_uri: str) -> None:
        session = self.get(session_id)
        if session is None:
            raise KeyError(session_id)
        session.pending_oauth = PendingOAuth(state=state, redirect_uri=redirect_uri)

    def pop_pending_oauth(self, session_id: str) -> PendingOAuth | None:
        """Remove and return the pending OAuth state; a second call returns None."""
        session = self.get(session_id)
        if session is None:
            return None
        pending, session.pending_oauth = session.pending_oauth, None
        return pending

    def __len__(self) -> int:
        return len(self._sessions)
