from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from .errors import CalendarNotFoundError, RegistrationError

load_dotenv()

DEFAULT_TIMEZONE = "Asia/Tokyo"
ALL_DAY_SENTINEL = "終日"
HOME_VENUE_CODE = "HG"
HOME_VENUE_NAME = "東久留米総合高校"


@dataclass
class Settings:
    timezone: ZoneInfo
    mapping_file: str
    service_account_file: str
    google_client_secrets: str
    google_token_file: str
    maps_api_key: str
    title_marker: str = "vs"
    default_duration: timedelta = timedelta(hours=4)
    purge_workers: int = 4
    venue_code: str = HOME_VENUE_CODE
    venue_name: str = HOME_VENUE_NAME

    @property
    def timezone_name(self) -> str:
        return self.timezone.key


def get_timezone() -> ZoneInfo:
    tz_name = os.getenv("TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except Exception:  # pragma: no cover
        logging.warning("Invalid TIMEZONE %s, falling back to %s", tz_name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logging.warning("Invalid %s %r, using %d", name, raw, default)
        return default
    if value < 1:
        logging.warning("%s must be positive, using %d", name, default)
        return default
    return value


def _default_service_account_file() -> str:
    if os.getenv("RENDER"):
        return "/etc/secrets/service-account.json"
    return os.path.join(os.getcwd(), "service-account.json")


def get_settings() -> Settings:
    settings = Settings(
        timezone=get_timezone(),
        mapping_file=os.getenv("CALENDAR_MAPPING_FILE", "calendar_mapping.json"),
        service_account_file=os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", _default_service_account_file()),
        google_client_secrets=os.getenv("GOOGLE_CLIENT_SECRETS", "credentials.json"),
        google_token_file=os.getenv("GOOGLE_TOKEN_FILE", "token.json"),
        maps_api_key=os.getenv("MAPS_API_KEY", ""),
        title_marker=os.getenv("TITLE_MARKER", "vs"),
        default_duration=timedelta(hours=_int_env("DEFAULT_EVENT_HOURS", 4)),
        purge_workers=_int_env("PURGE_WORKERS", 4),
    )
    if not settings.maps_api_key:
        logging.warning("MAPS_API_KEY is not set; locations will not be geocoded")
    return settings


def load_calendar_mapping(path: str) -> Mapping[str, str]:
    """Read the category -> calendar ID table.

    The file is read on every call so edits take effect on the next run.
    The returned mapping is read-only.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        raise RegistrationError("Failed to read the calendar mapping", f"{path}: {exc}") from exc

    if not isinstance(data, dict):
        raise RegistrationError("Calendar mapping must be a JSON object", f"{path}: got {type(data).__name__}")
    bad = [key for key, value in data.items() if not isinstance(value, str) or not value]
    if bad:
        raise RegistrationError("Calendar mapping has invalid calendar IDs", f"{path}: {', '.join(bad)}")

    logging.debug("Loaded %d calendar mappings from %s", len(data), path)
    return MappingProxyType(dict(data))


def get_calendar_id(mapping: Mapping[str, str], category: Optional[str]) -> str:
    calendar_id = mapping.get(category) if category is not None else None
    if not calendar_id:
        raise CalendarNotFoundError(category)
    return calendar_id


def all_calendar_ids(mapping: Mapping[str, str]) -> list[str]:
    # Several categories may share one calendar; purge each calendar once.
    return list(dict.fromkeys(mapping.values()))
