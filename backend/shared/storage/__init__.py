"""Storage backends for accounts, channels, predictions, activities and settings."""

from .base import Storage, UniqueViolation
from .memory import MemoryStorage

__all__ = [
    "MemoryStorage",
    "Storage",
    "UniqueViolation",
]
