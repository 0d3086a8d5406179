"""
Key/Value Record Model.

Backs the persisted cache tier. Values are opaque JSON strings;
the cache owns their shape.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, TimestampMixin


class KeyValueRecord(Base, TimestampMixin):
    """One persisted key/value pair."""

    __tablename__ = "ingest_key_value"

    key: Mapped[str] = mapped_column(
        String(512),
        primary_key=True,
        comment="Namespaced cache key"
    )

    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Serialized payload"
    )

    def __repr__(self) -> str:
        return f"<KeyValueRecord key={self.key!r} bytes={len(self.value)}>"
