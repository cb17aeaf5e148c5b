"""Turn a coordinate into the location summary shown on the panel."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

from map_snitch.data.geography import Coordinate, classify_region
from map_snitch.data.nominatim_client import Address, NominatimClient, ReverseGeocodeError
from map_snitch.data.timezone_client import (
    TimeZoneClient,
    TimeZoneLookupError,
    ZoneTime,
    format_local_time,
)

LOGGER = logging.getLogger(__name__)

GEOCODE_ERROR_COUNTRY = "Error fetching location"
GEOCODE_ERROR_CITY = "Try again later"
TIMEZONE_UNAVAILABLE = "Unable to determine timezone"


def _degrees(value: float) -> str:
    text = repr(value)
    return text[:-2] if text.endswith(".0") else text


@dataclass(frozen=True)
class LocationRecord:
    coordinate: Coordinate
    location_key: str
    country: str
    state: str
    city: str
    region_label: str
    time_zone: str
    local_time: str

    @property
    def maps_url(self) -> str:
        # Raw key text, so "1,2" stays "1,2" rather than "1.0,2.0".
        query = ",".join(part.strip() for part in self.location_key.split(","))
        return f"https://www.google.com/maps?q={query}"


class LocationEnricher:
    """Runs both lookups for one coordinate and folds them into a record."""

    def __init__(
        self,
        geocoder: NominatimClient,
        timezones: TimeZoneClient,
        *,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._geocoder = geocoder
        self._timezones = timezones
        self._now = now

    async def enrich(self, coordinate: Coordinate, location_key: Optional[str] = None) -> LocationRecord:
        lat, lon = coordinate.latitude, coordinate.longitude
        address, zone = await asyncio.gather(
            self._reverse(lat, lon),
            self._zone(lat, lon),
        )
        country, state, city, region_label = self._address_fields(coordinate, address)
        time_zone, local_time = self._zone_fields(zone)

        return LocationRecord(
            coordinate=coordinate,
            location_key=location_key or f"{_degrees(lat)},{_degrees(lon)}",
            country=country,
            state=state,
            city=city,
            region_label=region_label,
            time_zone=time_zone,
            local_time=local_time,
        )

    async def _reverse(self, lat: float, lon: float) -> Optional[Address]:
        try:
            return await asyncio.to_thread(self._geocoder.reverse, lat, lon)
        except ReverseGeocodeError as exc:
            LOGGER.warning("Location fetch error: %s", exc)
            return None

    async def _zone(self, lat: float, lon: float) -> Optional[ZoneTime]:
        try:
            return await asyncio.to_thread(self._timezones.lookup, lat, lon)
        except TimeZoneLookupError as exc:
            LOGGER.warning("Timezone fetch error: %s", exc)
            return None

    @staticmethod
    def _address_fields(coordinate: Coordinate, address: Optional[Address]) -> Tuple[str, str, str, str]:
        if address is None:
            return GEOCODE_ERROR_COUNTRY, "", GEOCODE_ERROR_CITY, ""
        return address.country, address.state, address.city, classify_region(coordinate, address.country)

    def _zone_fields(self, zone: Optional[ZoneTime]) -> Tuple[str, str]:
        if zone is None:
            return TIMEZONE_UNAVAILABLE, format_local_time(self._now())
        return zone.time_zone, format_local_time(zone.local_time)


__all__ = [
    "GEOCODE_ERROR_CITY",
    "GEOCODE_ERROR_COUNTRY",
    "LocationEnricher",
    "LocationRecord",
    "TIMEZONE_UNAVAILABLE",
]
