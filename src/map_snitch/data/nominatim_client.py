"""Straightforward Nominatim reverse-geocoding client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from map_snitch.config import Settings


class ReverseGeocodeError(RuntimeError):
    """The reverse geocoder could not be reached or returned unusable data."""


@dataclass(frozen=True)
class Address:
    country: str
    state: str
    city: str
    display_name: str
    details: Dict[str, str]


class NominatimClient:
    """Looks up the administrative address for a single coordinate."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    def reverse(self, lat: float, lon: float) -> Address:
        url = f"{self._settings.nominatim_url.rstrip('/')}/reverse"
        params = {
            "format": "json",
            "lat": lat,
            "lon": lon,
            "zoom": 18,
            "addressdetails": 1,
        }
        try:
            response = self._session.get(
                url,
                params=params,
                headers={"User-Agent": self._settings.user_agent},
                timeout=self._settings.http_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ReverseGeocodeError(f"reverse geocoding failed for {lat},{lon}: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("address"), dict):
            # Nominatim answers open water with {"error": "Unable to geocode"}
            raise ReverseGeocodeError(f"no address for {lat},{lon}: {_describe_error(data)}")
        return _parse_address(data)


def _describe_error(data: Any) -> str:
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return "unexpected response"


def _parse_address(data: Dict[str, Any]) -> Address:
    address = data["address"]
    return Address(
        country=address.get("country") or "Unknown Country",
        state=address.get("state") or address.get("region") or "",
        city=(
            address.get("city")
            or address.get("town")
            or address.get("village")
            or address.get("suburb")
            or "Unknown City"
        ),
        display_name=data.get("display_name") or "",
        details={str(key): str(value) for key, value in address.items()},
    )


__all__ = ["Address", "NominatimClient", "ReverseGeocodeError"]
