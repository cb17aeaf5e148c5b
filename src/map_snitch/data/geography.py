"""Coarse sub-national region labels from per-country bounding boxes."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, NamedTuple

UNAVAILABLE_REGION = "location data unavailable"

LOW_BAND = 0.33
HIGH_BAND = 0.66


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


class CountryBounds(NamedTuple):
    north: float
    south: float
    east: float
    west: float


# Approximate extents for the larger countries, keyed by the display name the
# reverse geocoder reports. Russia's east edge is past 180 so the box does not
# wrap.
COUNTRY_BOUNDS: Mapping[str, CountryBounds] = MappingProxyType({
    "United States": CountryBounds(49.00, 25.00, -66.93, -124.78),
    "Russia": CountryBounds(81.85, 41.18, 190.32, 19.25),
    "Canada": CountryBounds(83.11, 41.67, -52.62, -141.00),
    "Brazil": CountryBounds(5.27, -33.75, -34.79, -73.99),
    "China": CountryBounds(53.55, 18.15, 134.77, 73.55),
    "Australia": CountryBounds(-10.06, -43.64, 153.61, 113.16),
    "India": CountryBounds(35.51, 6.75, 97.40, 68.10),
    "Argentina": CountryBounds(-21.78, -55.06, -53.65, -73.56),
    "Mexico": CountryBounds(32.72, 14.53, -86.70, -118.40),
    "Indonesia": CountryBounds(5.90, -10.95, 141.02, 95.29),
    "South Africa": CountryBounds(-22.13, -34.84, 32.89, 16.47),
    "Ukraine": CountryBounds(52.37, 44.39, 40.22, 22.13),
    "France": CountryBounds(51.09, 41.36, 9.56, -5.14),
    "Germany": CountryBounds(55.06, 47.27, 15.04, 5.87),
    "Japan": CountryBounds(45.52, 24.25, 145.82, 122.94),
    "Spain": CountryBounds(43.79, 36.00, 4.33, -9.30),
    "Sweden": CountryBounds(69.06, 55.34, 24.16, 11.11),
    "Norway": CountryBounds(71.18, 57.97, 31.17, 4.65),
    "Finland": CountryBounds(70.09, 59.81, 31.59, 20.55),
    "Poland": CountryBounds(54.84, 49.00, 24.15, 14.12),
    "Italy": CountryBounds(47.09, 36.65, 18.52, 6.63),
    "United Kingdom": CountryBounds(58.67, 49.96, 1.76, -8.65),
    "Turkey": CountryBounds(42.14, 35.82, 44.83, 25.66),
    "Thailand": CountryBounds(20.46, 5.61, 105.64, 97.34),
    "Vietnam": CountryBounds(23.39, 8.56, 109.47, 102.14),
    "New Zealand": CountryBounds(-34.39, -47.29, 178.56, 166.42),
    "South Korea": CountryBounds(38.61, 33.11, 131.87, 125.07),
    "Malaysia": CountryBounds(7.36, 0.85, 119.27, 99.64),
    "Philippines": CountryBounds(21.12, 4.58, 126.60, 116.93),
    "Chile": CountryBounds(-17.50, -55.98, -66.42, -75.64),
    "Peru": CountryBounds(-0.03, -18.35, -68.68, -81.33),
    "Colombia": CountryBounds(13.38, -4.23, -66.87, -81.73),
    "Greece": CountryBounds(41.75, 34.80, 28.24, 19.37),
    "Romania": CountryBounds(48.27, 43.62, 29.67, 20.26),
    "Portugal": CountryBounds(42.15, 36.96, -6.19, -9.50),
    "Netherlands": CountryBounds(53.51, 50.75, 7.22, 3.36),
    "Belgium": CountryBounds(51.50, 49.49, 6.40, 2.54),
    "Switzerland": CountryBounds(47.81, 45.82, 10.49, 5.96),
    "Austria": CountryBounds(49.02, 46.37, 17.16, 9.53),
    "Czech Republic": CountryBounds(51.06, 48.55, 18.86, 12.09),
    "Denmark": CountryBounds(57.75, 54.56, 15.19, 8.07),
    "Hungary": CountryBounds(48.59, 45.74, 22.90, 16.11),
    "Ireland": CountryBounds(55.39, 51.42, -6.00, -10.48),
    "Slovakia": CountryBounds(49.61, 47.73, 22.57, 16.84),
    "Bulgaria": CountryBounds(44.22, 41.23, 28.61, 22.36),
    "Croatia": CountryBounds(46.55, 42.39, 19.45, 13.49),
    "Estonia": CountryBounds(59.68, 57.52, 28.21, 21.76),
    "Latvia": CountryBounds(58.08, 55.67, 28.24, 20.97),
    "Lithuania": CountryBounds(56.45, 53.89, 26.87, 20.93),
    "Slovenia": CountryBounds(46.87, 45.42, 16.61, 13.38),
    "Taiwan": CountryBounds(25.30, 21.90, 122.00, 120.00),
    "Israel": CountryBounds(33.34, 29.49, 35.90, 34.27),
    "Egypt": CountryBounds(31.67, 22.00, 36.90, 24.70),
    "Morocco": CountryBounds(35.92, 27.66, -1.12, -13.17),
    "Tunisia": CountryBounds(37.35, 30.23, 11.60, 7.52),
    "Kenya": CountryBounds(5.02, -4.72, 41.91, 33.91),
    "Nigeria": CountryBounds(13.89, 4.27, 14.68, 2.67),
    "Ghana": CountryBounds(11.17, 4.74, 1.19, -3.26),
    "Botswana": CountryBounds(-17.78, -26.91, 29.38, 20.00),
    "Uruguay": CountryBounds(-30.08, -34.98, -53.07, -58.44),
    "Paraguay": CountryBounds(-19.29, -27.61, -54.25, -62.65),
    "Bolivia": CountryBounds(-9.68, -22.90, -57.45, -69.65),
    "Ecuador": CountryBounds(1.44, -5.00, -75.19, -81.01),
    "Cambodia": CountryBounds(14.69, 10.41, 107.64, 102.33),
    "Laos": CountryBounds(22.50, 13.91, 107.70, 100.09),
    "Mongolia": CountryBounds(52.15, 41.56, 119.94, 87.73),
    "Sri Lanka": CountryBounds(9.83, 5.92, 81.88, 79.65),
    "Bangladesh": CountryBounds(26.63, 20.74, 92.67, 88.03),
    "Nepal": CountryBounds(30.45, 26.36, 88.20, 80.06),
    "Myanmar": CountryBounds(28.54, 9.78, 101.17, 92.19),
})


def _band(position: float, low: str, high: str) -> str:
    if position < LOW_BAND:
        return low
    if position > HIGH_BAND:
        return high
    return "Central"


def classify_region(coordinate: Coordinate, country: str) -> str:
    """
    Returns a coarse label such as "Northern Western region" for a coordinate
    inside the named country. Positions outside the box are not clamped and
    land in the outer bands.
    """
    bounds = COUNTRY_BOUNDS.get(country)
    if bounds is None:
        return UNAVAILABLE_REGION

    lat_position = (coordinate.latitude - bounds.south) / (bounds.north - bounds.south)
    lng_position = (coordinate.longitude - bounds.west) / (bounds.east - bounds.west)

    lat_band = _band(lat_position, "Southern", "Northern")
    lng_band = _band(lng_position, "Western", "Eastern")
    return f"{lat_band} {lng_band} region"


__all__ = ["COUNTRY_BOUNDS", "Coordinate", "CountryBounds", "UNAVAILABLE_REGION", "classify_region"]
