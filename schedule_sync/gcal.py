from __future__ import annotations

import datetime as dt
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List
from zoneinfo import ZoneInfo

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest

from .config import Settings
from .errors import PurgeError, RegistrationError
from .models import PurgeReport
from .utils import day_window

SCOPES = ["https://www.googleapis.com/auth/calendar"]
DELETE_BATCH_SIZE = 50
GONE_STATUSES = (404, 410)


def _load_user_credentials(client_secrets_file: str, token_file: str) -> Credentials:
    creds = None
    if token_file and os.path.exists(token_file):
        try:
            creds = Credentials.from_authorized_user_file(token_file, SCOPES)
        except ValueError:
            creds = None
    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_secrets_file(client_secrets_file, SCOPES)
            creds = flow.run_local_server(port=0)
        with open(token_file, "w") as token:
            token.write(creds.to_json())
    return creds


def load_credentials(settings: Settings):
    try:
        if os.path.exists(settings.service_account_file):
            logging.info("Using service account %s", settings.service_account_file)
            return service_account.Credentials.from_service_account_file(settings.service_account_file, scopes=SCOPES)
        logging.info("Service account file not found, falling back to OAuth client %s", settings.google_client_secrets)
        return _load_user_credentials(settings.google_client_secrets, settings.google_token_file)
    except (OSError, ValueError, GoogleAuthError) as exc:
        raise RegistrationError("Failed to load Google credentials", str(exc)) from exc


def build_service(creds):
    # httplib2.Http is not thread-safe; give every request its own connection
    # so the purge workers can share one service object.
    def build_request(http, *args, **kwargs):
        return HttpRequest(google_auth_httplib2.AuthorizedHttp(creds, http=httplib2.Http()), *args, **kwargs)

    authorized_http = google_auth_httplib2.AuthorizedHttp(creds, http=httplib2.Http())
    return build("calendar", "v3", http=authorized_http, requestBuilder=build_request, cache_discovery=False)


def list_events(service, calendar_id: str, time_min: dt.datetime, time_max: dt.datetime) -> List[dict]:
    events: List[dict] = []
    page_token = None
    while True:
        events_result = (
            service.events()
            .list(
                calendarId=calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                singleEvents=True,
                showDeleted=False,
                maxResults=2500,
                pageToken=page_token,
            )
            .execute()
        )
        events.extend(events_result.get("items", []))
        page_token = events_result.get("nextPageToken")
        if not page_token:
            break
    return events


def delete_events(service, calendar_id: str, events: List[dict], batch_size: int = DELETE_BATCH_SIZE) -> int:
    """Delete ``events`` from one calendar using batched requests.

    Returns the number of events removed. Raises PurgeError if any delete in
    any batch failed, after every batch has been sent.
    """
    failures: list[str] = []
    deleted = 0

    def callback(request_id, response, exception):
        nonlocal deleted
        if exception is None:
            deleted += 1
        elif isinstance(exception, HttpError) and exception.resp.status in GONE_STATUSES:
            logging.debug("Event %s already removed from %s", request_id, calendar_id)
            deleted += 1
        else:
            failures.append(f"{request_id}: {exception}")

    for i in range(0, len(events), batch_size):
        batch = service.new_batch_http_request(callback=callback)
        for event in events[i : i + batch_size]:
            batch.add(service.events().delete(calendarId=calendar_id, eventId=event["id"]), request_id=event["id"])
        batch.execute()

    if failures:
        raise PurgeError(f"Failed to delete {len(failures)} event(s) from {calendar_id}", "; ".join(failures))
    return deleted


def insert_event(service, calendar_id: str, body: dict) -> dict:
    return service.events().insert(calendarId=calendar_id, body=body).execute()


def _purge_pair(service, calendar_id: str, day: str, tz: ZoneInfo, dry_run: bool) -> int:
    time_min, time_max = day_window(day, tz)
    existing = list_events(service, calendar_id, time_min, time_max)
    logging.info("Found %d existing event(s) in %s on %s", len(existing), calendar_id, day)
    if not existing:
        return 0
    if dry_run:
        for event in existing:
            logging.info("DELETE %s %s", event.get("summary", ""), event.get("start", {}))
        return 0
    return delete_events(service, calendar_id, existing)


def purge_date_windows(
    service,
    dates: Iterable[str],
    calendar_ids: Iterable[str],
    tz: ZoneInfo,
    max_workers: int = 4,
    dry_run: bool = False,
) -> PurgeReport:
    """Empty every calendar for every given day.

    Returns only once every (day, calendar) pair has finished, so callers can
    insert afterwards without racing a deletion. Any failure is raised as a
    PurgeError after all pairs have settled.
    """
    days = list(dict.fromkeys(dates))
    calendars = list(dict.fromkeys(calendar_ids))
    for day in days:
        try:
            day_window(day, tz)
        except ValueError as exc:
            raise PurgeError(f"Invalid event date '{day}'", str(exc)) from exc

    report = PurgeReport()
    pairs = [(day, calendar_id) for day in days for calendar_id in calendars]
    if not pairs:
        return report

    logging.info("Purging %d calendar(s) for %d date(s)", len(calendars), len(days))
    failures: list[tuple[str, str, Exception]] = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(_purge_pair, service, calendar_id, day, tz, dry_run): (day, calendar_id)
            for day, calendar_id in pairs
        }
        for future in as_completed(futures):
            day, calendar_id = futures[future]
            try:
                report.deleted[(day, calendar_id)] = future.result()
            except Exception as exc:
                logging.error("Purge of %s on %s failed: %s", calendar_id, day, exc)
                failures.append((day, calendar_id, exc))

    if failures:
        day, calendar_id, exc = failures[0]
        details = "; ".join(f"{d} {c}: {e}" for d, c, e in failures)
        raise PurgeError(f"Failed to clear existing events from {calendar_id} on {day}", details) from exc

    logging.info("Purge complete. %d event(s) deleted", report.total)
    return report
