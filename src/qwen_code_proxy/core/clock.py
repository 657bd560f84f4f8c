"""Wall-clock helpers.

Time-dependent components take a ``Clock`` so tests can pin "now".
"""

from collections.abc import Callable
from datetime import UTC, datetime


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_millis(moment: datetime) -> int:
    """Unix timestamp in milliseconds."""
    return int(moment.timestamp() * 1000)


def utc_date(moment: datetime) -> str:
    """UTC calendar day as ``YYYY-MM-DD``."""
    return moment.astimezone(UTC).strftime("%Y-%m-%d")
