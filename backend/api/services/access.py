"""Ownership checks shared by the resource services"""

from typing import Protocol, TypeVar

from shared.models import Account

from core.errors import Forbidden, NotFound


class Owned(Protocol):
    owner_id: int


T = TypeVar("T", bound=Owned)


def ensure_owned(record: T | None, account: Account, label: str) -> T:
    """Return *record* if *account* owns it.

    Existence is checked first: a missing id is NotFound even when the caller
    could never have owned it; an existing record of another account is Forbidden.
    """
    if record is None:
        raise NotFound(f"{label} not found")
    if record.owner_id != account.id:
        raise Forbidden(f"You don't have access to this {label.lower()}")
    return record
