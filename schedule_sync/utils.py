from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from .config import ALL_DAY_SENTINEL
from .models import TimeWindow

NON_TIME_CHARS = re.compile(r"[^0-9:-]")
RANGE_REGEX = re.compile(r"(\d{1,2}):(\d{2})-(\d{1,2}):(\d{2})")
START_REGEX = re.compile(r"(\d{1,2}):(\d{2})")


def build_datetime(day: str, hour: str, minute: str) -> datetime:
    parsed = date.fromisoformat(day)
    return datetime(parsed.year, parsed.month, parsed.day, int(hour), int(minute))


def parse_time_window(full_date: str, time_str: Optional[str]) -> TimeWindow:
    """Turn a hand-written time like "14:00〜16:30" into a TimeWindow.

    Unreadable text never fails: it becomes an all-day window flagged as a
    fallback.
    """
    if time_str is None or not str(time_str).strip() or str(time_str).strip() == ALL_DAY_SENTINEL:
        return TimeWindow.whole_day(full_date)

    cleaned = NON_TIME_CHARS.sub("", str(time_str))
    try:
        match = RANGE_REGEX.search(cleaned)
        if match:
            sh, sm, eh, em = match.groups()
            return TimeWindow.timed(build_datetime(full_date, sh, sm), build_datetime(full_date, eh, em))

        match = START_REGEX.search(cleaned)
        if match:
            return TimeWindow.timed(build_datetime(full_date, *match.groups()))
    except ValueError as exc:
        logging.warning("Invalid time %r on %s: %s", time_str, full_date, exc)

    logging.warning("Could not parse time %r on %s; registering as all-day", time_str, full_date)
    return TimeWindow.whole_day(full_date, fallback=True)


def day_window(day: str, tz: ZoneInfo) -> tuple[datetime, datetime]:
    parsed = date.fromisoformat(day)
    start = datetime(parsed.year, parsed.month, parsed.day, tzinfo=tz)
    return start, start + timedelta(days=1)
