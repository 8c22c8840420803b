from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List

from schedule_sync.config import get_settings
from schedule_sync.errors import RegistrationError
from schedule_sync.gcal import build_service, load_credentials
from schedule_sync.location import Geocoder
from schedule_sync.models import RawEvent
from schedule_sync.sync import EventSynchronizer


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Register parsed schedule events to Google Calendar")
    parser.add_argument("events", help="JSON file with the parsed events, or - for stdin")
    parser.add_argument("--mapping", type=str, default=None, help="Category to calendar ID mapping file")
    parser.add_argument("--dry-run", action="store_true", help="Show actions without modifying calendars")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def read_events(path: str) -> List[RawEvent]:
    if path == "-":
        payload = json.load(sys.stdin)
    else:
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
    if isinstance(payload, dict):
        payload = payload.get("events")
    if not isinstance(payload, list):
        raise ValueError("expected a JSON array of events or an object with an 'events' array")
    return [RawEvent.from_dict(item) for item in payload if isinstance(item, dict)]


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    settings = get_settings()
    if args.mapping:
        settings.mapping_file = args.mapping

    try:
        events = read_events(args.events)
    except (OSError, ValueError) as exc:
        logging.error("Invalid event data: %s", exc)
        return 2

    try:
        service = build_service(load_credentials(settings))
        synchronizer = EventSynchronizer(
            service,
            settings,
            geocoder=Geocoder(settings.maps_api_key),
            dry_run=args.dry_run,
        )
        outcomes = synchronizer.run(events)
    except RegistrationError as exc:
        logging.error("Registration failed: %s (%s)", exc.message, exc.details)
        print(json.dumps(exc.to_dict(), ensure_ascii=False, indent=2))
        return 1

    print(json.dumps([outcome.to_dict() for outcome in outcomes], ensure_ascii=False, indent=2))
    logging.info("Done")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
