from pydantic import Field
from datetime import date, datetime, time, timezone


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the form MongoDB returns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Mixin for adding timestamp fields to documents."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def update_timestamp(self):
        """Update the updated_at timestamp."""
        self.updated_at = utc_now()


def start_of_day(day: date) -> datetime:
    """Midnight UTC of ``day`` as a naive datetime."""
    return datetime.combine(day, time.min)
