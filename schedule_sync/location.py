from __future__ import annotations

import logging
from typing import Optional

import requests

from .config import HOME_VENUE_CODE, HOME_VENUE_NAME

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class Geocoder:
    """Thin client for the Google Geocoding API.

    ``lookup`` never raises; anything other than a match yields "".
    """

    def __init__(self, api_key: str, language: str = "ja", timeout: float = 10.0, session=None):
        self.api_key = api_key
        self.language = language
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, place_name: str) -> str:
        if not self.api_key:
            logging.warning("No geocoding API key; skipping lookup for %r", place_name)
            return ""
        params = {"address": place_name, "key": self.api_key, "language": self.language}
        try:
            resp = self.session.get(GEOCODE_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logging.error("Geocoding request for %r failed: %s", place_name, exc)
            return ""

        if not isinstance(data, dict):
            logging.error("Unexpected geocoding response for %r: %r", place_name, data)
            return ""
        results = data.get("results")
        if data.get("status") != "OK" or not results or not isinstance(results, list):
            logging.info("No geocoding match for %r (status=%s)", place_name, data.get("status"))
            return ""
        first = results[0]
        address = first.get("formatted_address") if isinstance(first, dict) else None
        if not isinstance(address, str):
            logging.error("Geocoding result for %r has no address: %r", place_name, first)
            return ""
        return address


def resolve_location(
    location_str: Optional[str],
    geocoder: Optional[Geocoder],
    venue_code: str = HOME_VENUE_CODE,
    venue_name: str = HOME_VENUE_NAME,
) -> str:
    if not location_str or not location_str.strip():
        return ""
    if location_str.strip().upper() == venue_code.upper():
        return venue_name
    if geocoder is None:
        return ""
    return geocoder.lookup(location_str)
