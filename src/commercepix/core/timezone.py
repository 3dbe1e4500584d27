"""UTC timezone enforcement and helpers.

Sets TZ=UTC for the process. All timestamps are stored as naive UTC.
"""

import os
from datetime import datetime, timezone

os.environ["TZ"] = "UTC"


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (matches stored columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def minute_floor(moment: datetime) -> datetime:
    """Truncate a timestamp to the start of its minute."""
    return moment.replace(second=0, microsecond=0)


def day_floor(moment: datetime) -> datetime:
    """Truncate a timestamp to the start of its UTC day."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def month_floor(moment: datetime) -> datetime:
    """Truncate a timestamp to the first instant of its UTC month."""
    return day_floor(moment).replace(day=1)
