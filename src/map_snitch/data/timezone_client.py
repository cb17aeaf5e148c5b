"""Minimal timezone lookup client."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests

from map_snitch.config import Settings


class TimeZoneLookupError(RuntimeError):
    """The timezone service could not be reached or returned unusable data."""


@dataclass(frozen=True)
class ZoneTime:
    time_zone: str
    local_time: datetime


def format_local_time(moment: datetime) -> str:
    """Render like ``7/4/2025, 18:05:09`` regardless of platform strftime quirks."""
    return f"{moment.month}/{moment.day}/{moment.year}, {moment:%H:%M:%S}"


class TimeZoneClient:
    """Fetches the IANA zone and current wall-clock time for a coordinate."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    def lookup(self, lat: float, lon: float) -> ZoneTime:
        url = f"{self._settings.timezone_api_url.rstrip('/')}/Time/current/coordinate"
        try:
            response = self._session.get(
                url,
                params={"latitude": lat, "longitude": lon},
                headers={"User-Agent": self._settings.user_agent},
                timeout=self._settings.http_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise TimeZoneLookupError(f"timezone lookup failed for {lat},{lon}: {exc}") from exc

        try:
            zone = str(data["timeZone"])
            moment = _parse_wall_clock(str(data["dateTime"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise TimeZoneLookupError(f"malformed timezone payload for {lat},{lon}") from exc

        if not zone:
            raise TimeZoneLookupError(f"empty timezone for {lat},{lon}")
        return ZoneTime(time_zone=zone, local_time=moment)


def _parse_wall_clock(text: str) -> datetime:
    # The service reports seven fractional digits, which fromisoformat rejects.
    whole, _, _fraction = text.partition(".")
    return datetime.fromisoformat(whole)


__all__ = ["TimeZoneClient", "TimeZoneLookupError", "ZoneTime", "format_local_time"]
