from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

from googleapiclient.errors import HttpError

from . import gcal
from .config import Settings, all_calendar_ids, get_calendar_id, load_calendar_mapping
from .errors import CalendarNotFoundError
from .location import Geocoder, resolve_location
from .models import Outcome, RawEvent, build_event_body
from .utils import parse_time_window


def filter_eligible(events: Iterable[RawEvent], marker: str = "vs") -> List[RawEvent]:
    marker = marker.lower()
    return [event for event in events if marker in event.title.lower()]


def dates_for(events: Iterable[RawEvent]) -> List[str]:
    return list(dict.fromkeys(event.full_date for event in events))


def _http_error_message(exc: HttpError) -> str:
    reason = getattr(exc, "reason", None)
    return reason or str(exc)


class EventSynchronizer:
    """Replace the calendar contents of every date in a batch with the batch.

    One run: read the mapping, keep the eligible events, clear every mapped
    calendar for each affected date, then insert each event and report one
    Outcome per eligible event in input order.
    """

    def __init__(self, service, settings: Settings, geocoder: Optional[Geocoder] = None, dry_run: bool = False):
        self.service = service
        self.settings = settings
        self.geocoder = geocoder
        self.dry_run = dry_run

    def run(self, raw_events: Iterable[RawEvent]) -> List[Outcome]:
        mapping = load_calendar_mapping(self.settings.mapping_file)
        eligible = filter_eligible(raw_events, self.settings.title_marker)
        logging.info("Registering %d eligible event(s)", len(eligible))
        if not eligible:
            return []

        gcal.purge_date_windows(
            self.service,
            dates_for(eligible),
            all_calendar_ids(mapping),
            self.settings.timezone,
            max_workers=self.settings.purge_workers,
            dry_run=self.dry_run,
        )

        outcomes = [self.register(event, mapping) for event in eligible]
        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logging.info("Registration complete. %d succeeded, %d failed", len(outcomes) - failed, failed)
        return outcomes

    def register(self, event: RawEvent, mapping: Mapping[str, str]) -> Outcome:
        title = event.summary
        try:
            calendar_id = get_calendar_id(mapping, event.category)
            body = self.build_body(event)
            if self.dry_run:
                logging.info("CREATE %s in %s %s-%s", title, calendar_id, body["start"], body["end"])
                return Outcome.success(title, None)
            created = gcal.insert_event(self.service, calendar_id, body)
        except CalendarNotFoundError as exc:
            logging.warning("Skipping %s: %s", title, exc)
            return Outcome.error(title, str(exc))
        except HttpError as exc:
            logging.error("Failed to create event for %s: %s", title, exc)
            return Outcome.error(title, _http_error_message(exc))
        except Exception as exc:
            logging.exception("Failed to create event for %s", title)
            return Outcome.error(title, str(exc))

        logging.info("Created %s", title)
        return Outcome.success(title, created.get("htmlLink"))

    def build_body(self, event: RawEvent) -> dict:
        window = parse_time_window(event.full_date, event.time_str)
        location = resolve_location(
            event.location_str,
            self.geocoder,
            venue_code=self.settings.venue_code,
            venue_name=self.settings.venue_name,
        )
        return build_event_body(
            event,
            window,
            location,
            self.settings.timezone_name,
            default_duration=self.settings.default_duration,
        )
