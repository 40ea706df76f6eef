"""Day enumeration and chunking for backfills."""

import datetime as dt
import time
from typing import Iterator, Optional, Sequence, TypeVar

from tokenprices.domain.models.price import SECONDS_PER_DAY, start_of_day

T = TypeVar("T")


def generate_daily_timestamps(start: int, now: Optional[int] = None) -> list[int]:
    """``start, start + 1d, ...`` up to and including ``now``. Empty if start is in the future."""
    if now is None:
        now = int(time.time())
    return list(range(start, now + 1, SECONDS_PER_DAY))


def daily_range(start: int, count: int) -> list[int]:
    """The first ``count`` days from ``start``; rebuilds a job's enumeration on resume."""
    return [start + i * SECONDS_PER_DAY for i in range(count)]


def resume_point(latest: dt.date) -> int:
    """Start of the UTC day after ``latest``."""
    return start_of_day(latest) + SECONDS_PER_DAY


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for i in range(0, len(items), size):
        yield items[i:i + size]
