"""
Storage Models Package.

ORM models of the persisted cache tier.
"""

from storage.models.base import Base, TimestampMixin
from storage.models.key_value import KeyValueRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "KeyValueRecord",
]
