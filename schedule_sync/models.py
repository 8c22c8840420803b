from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class RawEvent:
    title: str
    category: str
    full_date: str
    time_str: Optional[str] = None
    location_str: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RawEvent":
        return cls(
            title=str(data.get("title") or ""),
            category=str(data.get("category") or ""),
            full_date=str(data.get("full_date") or ""),
            time_str=_optional_str(data.get("time_str")),
            location_str=_optional_str(data.get("location_str")),
            description=_optional_str(data.get("description")),
        )

    @property
    def summary(self) -> str:
        return f"[{self.category}] {self.title}"


@dataclass(frozen=True)
class TimeWindow:
    """Either a timed window (naive civil datetimes) or an all-day date pair.

    ``fallback`` marks an all-day window produced because the time text could
    not be parsed, as opposed to an event that really is all day.
    """

    all_day: bool
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    date: Optional[str] = None
    fallback: bool = False

    @classmethod
    def timed(cls, start: datetime, end: Optional[datetime] = None) -> "TimeWindow":
        return cls(all_day=False, start=start, end=end)

    @classmethod
    def whole_day(cls, date: str, fallback: bool = False) -> "TimeWindow":
        return cls(all_day=True, date=date, fallback=fallback)


@dataclass
class Outcome:
    status: str
    title: str
    event_url: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, title: str, event_url: Optional[str]) -> "Outcome":
        return cls(status="success", title=title, event_url=event_url)

    @classmethod
    def error(cls, title: str, message: str) -> "Outcome":
        return cls(status="error", title=title, message=message)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        out = {"status": self.status, "title": self.title}
        if self.event_url is not None:
            out["event_url"] = self.event_url
        if self.message is not None:
            out["message"] = self.message
        return out


@dataclass
class PurgeReport:
    deleted: dict[tuple[str, str], int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.deleted.values())


def build_event_body(
    event: RawEvent,
    window: TimeWindow,
    location: str,
    timezone_name: str,
    default_duration: timedelta = timedelta(hours=4),
) -> dict:
    body: dict = {"summary": event.summary}
    if location:
        body["location"] = location
    if event.description:
        body["description"] = event.description

    if window.all_day:
        # Calendar treats end.date as exclusive; same-day end is kept as the
        # upstream payload has always sent it, pending confirmation.
        body["start"] = {"date": window.date}
        body["end"] = {"date": window.date}
        return body

    start = window.start
    end = window.end if window.end is not None else start + default_duration
    if end < start:
        # "22:00-1:00" runs past midnight
        end += timedelta(days=1)
    body["start"] = {"dateTime": start.strftime(DATETIME_FORMAT), "timeZone": timezone_name}
    body["end"] = {"dateTime": end.strftime(DATETIME_FORMAT), "timeZone": timezone_name}
    return body
