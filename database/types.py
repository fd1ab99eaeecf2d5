"""Column types shared by the models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum as SQLEnum
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime on every backend.

    SQLite hands back naive values; they are stored as UTC so the tzinfo is
    re-attached on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def enum_type(enum_cls):
    """Non-native enum column storing the member values."""
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=50,
        values_callable=lambda members: [member.value for member in members],
    )
