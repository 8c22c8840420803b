"""Shared fixtures: an in-memory stand-in for the Calendar v3 service."""
import itertools
import json
import threading
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import httplib2
import pytest
from googleapiclient.errors import HttpError

from schedule_sync.config import Settings


def make_http_error(status=500, message="backend error"):
    resp = httplib2.Response({"status": str(status)})
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(resp, content)


class FakeRequest:
    def __init__(self, fn):
        self.fn = fn

    def execute(self):
        return self.fn()


class FakeBatch:
    def __init__(self, callback):
        self.callback = callback
        self.requests = []

    def add(self, request, request_id=None):
        self.requests.append((request_id, request))

    def execute(self):
        for request_id, request in self.requests:
            try:
                response, exception = request.execute(), None
            except HttpError as exc:
                response, exception = None, exc
            self.callback(request_id, response, exception)


class FakeEvents:
    def __init__(self, service):
        self.service = service

    def list(self, calendarId, timeMin, timeMax, pageToken=None, **kwargs):
        return FakeRequest(lambda: self.service._list(calendarId, timeMin, timeMax, pageToken))

    def delete(self, calendarId, eventId):
        return FakeRequest(lambda: self.service._delete(calendarId, eventId))

    def insert(self, calendarId, body):
        return FakeRequest(lambda: self.service._insert(calendarId, body))


class FakeCalendarService:
    """Keeps events per calendar and records every call in order."""

    def __init__(self, page_size=2500):
        self.calendars = {}
        self.calls = []
        self.page_size = page_size
        self.fail_list = set()
        self.fail_delete = set()
        self.fail_insert = set()
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def events(self):
        return FakeEvents(self)

    def new_batch_http_request(self, callback=None):
        return FakeBatch(callback)

    def add_event(self, calendar_id, day, summary="old"):
        event_id = f"evt{next(self._ids)}"
        self.calendars.setdefault(calendar_id, []).append(
            {"id": event_id, "summary": summary, "start": {"date": day}, "_day": day}
        )
        return event_id

    def events_on(self, calendar_id, day):
        return [e for e in self.calendars.get(calendar_id, []) if e["_day"] == day]

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def _list(self, calendar_id, time_min, time_max, page_token):
        self._record("list", calendar_id, time_min, time_max)
        if calendar_id in self.fail_list:
            raise make_http_error(503, "list unavailable")
        start = datetime.fromisoformat(time_min)
        end = datetime.fromisoformat(time_max)
        days = set()
        cursor = start
        while cursor < end:
            days.add(cursor.date().isoformat())
            cursor += timedelta(days=1)
        items = [e for e in self.calendars.get(calendar_id, []) if e["_day"] in days]
        offset = int(page_token or 0)
        page = items[offset : offset + self.page_size]
        result = {"items": page}
        if offset + self.page_size < len(items):
            result["nextPageToken"] = str(offset + self.page_size)
        return result

    def _delete(self, calendar_id, event_id):
        self._record("delete", calendar_id, event_id)
        if event_id in self.fail_delete:
            raise make_http_error(500, "delete failed")
        with self._lock:
            events = self.calendars.get(calendar_id, [])
            remaining = [e for e in events if e["id"] != event_id]
            if len(remaining) == len(events):
                raise make_http_error(410, "deleted")
            self.calendars[calendar_id] = remaining
        return ""

    def _insert(self, calendar_id, body):
        self._record("insert", calendar_id, body["summary"])
        if body["summary"] in self.fail_insert:
            raise make_http_error(400, "Bad Request")
        start = body["start"]
        day = start.get("date") or start["dateTime"][:10]
        event_id = f"evt{next(self._ids)}"
        with self._lock:
            self.calendars.setdefault(calendar_id, []).append(dict(body, id=event_id, _day=day))
        return {"id": event_id, "htmlLink": f"https://www.google.com/calendar/event?eid={event_id}"}


@pytest.fixture
def make_fake_service():
    return FakeCalendarService


@pytest.fixture
def fake_service(make_fake_service):
    return make_fake_service()


@pytest.fixture
def mapping_file(tmp_path):
    path = tmp_path / "calendar_mapping.json"
    path.write_text(
        json.dumps({"U15": "cal-u15", "U18": "cal-u18", "Senior": "cal-senior"}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def settings(mapping_file):
    return Settings(
        timezone=ZoneInfo("Asia/Tokyo"),
        mapping_file=str(mapping_file),
        service_account_file="service-account.json",
        google_client_secrets="credentials.json",
        google_token_file="token.json",
        maps_api_key="",
    )
