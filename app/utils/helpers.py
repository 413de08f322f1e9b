from datetime import datetime, date, timedelta
from typing import Iterable, List, Optional, TypeVar

import pytz

T = TypeVar("T")


def utc_now() -> datetime:
    """Current UTC time"""
    return datetime.now(pytz.utc)


def utc_today() -> date:
    """Current UTC calendar date"""
    return utc_now().date()


def format_timestamp(dt: Optional[datetime] = None) -> Optional[str]:
    """ISO format, None passes through"""
    if dt is None:
        return None
    return dt.isoformat()


def start_of_day(day: date) -> datetime:
    """Midnight UTC of the given day"""
    return datetime(day.year, day.month, day.day, tzinfo=pytz.utc)


def running_mean(old_mean: Optional[float], old_count: int, value: float) -> float:
    """
    Update a mean with one new sample.

    Args:
        old_mean: mean over the previous old_count samples (None when empty)
        old_count: number of samples already folded into old_mean
        value: new sample

    Returns:
        float: mean over old_count + 1 samples
    """
    if old_mean is None or old_count <= 0:
        return float(value)
    return (old_mean * old_count + value) / (old_count + 1)


def unique_in_order(items: Iterable[T]) -> List[T]:
    """Drop repeats, keep first occurrence order"""
    seen = set()
    result = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)
