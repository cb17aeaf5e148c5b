"""Read-only view of the page hosting the embedded map viewer.

The watcher never drives a browser itself. Something on the page side (a
userscript, a devtools hook, a test) publishes the page address and the
``src`` of interesting elements, and the detector reads them through an
:class:`Environment`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from map_snitch.data.geography import Coordinate

LOGGER = logging.getLogger(__name__)

MutationCallback = Callable[[], None]

# Plain decimal degrees with optional exponent; no underscores, hex or words.
_DECIMAL = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")


class InvalidLocationKey(ValueError):
    """Raised when a location key is not a usable ``"lat,lng"`` pair."""


@dataclass(frozen=True)
class EnvironmentSnapshot:
    page_url: Optional[str] = None
    element_sources: Mapping[str, Optional[str]] = field(default_factory=dict)

    def has_element(self, element_id: str) -> bool:
        return element_id in self.element_sources


def _query_param(url: Optional[str], name: str) -> Optional[str]:
    if not url:
        return None
    values = parse_qs(urlsplit(url).query).get(name)
    if not values:
        return None
    return values[0]


def extract_location_key(snapshot: EnvironmentSnapshot, viewer_id: str) -> Optional[str]:
    """
    Returns the raw ``"lat,lng"`` key currently displayed, or None.

    The page's own ``locationSearch`` and ``location`` parameters win over the
    ``location`` parameter of the embedded viewer's address.
    """
    key = _query_param(snapshot.page_url, "locationSearch") or _query_param(snapshot.page_url, "location")
    if key:
        return key
    return _query_param(snapshot.element_sources.get(viewer_id), "location")


def parse_location_key(key: str) -> Coordinate:
    parts = key.split(",")
    if len(parts) != 2:
        raise InvalidLocationKey(f"expected 'lat,lng', got {key!r}")
    if not all(_DECIMAL.match(part) for part in parts):
        raise InvalidLocationKey(f"non-numeric location key {key!r}")
    latitude = float(parts[0])
    longitude = float(parts[1])

    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise InvalidLocationKey(f"non-finite location key {key!r}")
    if not -90.0 <= latitude <= 90.0:
        raise InvalidLocationKey(f"latitude out of range in {key!r}")
    if not -180.0 <= longitude < 360.0:
        raise InvalidLocationKey(f"longitude out of range in {key!r}")
    return Coordinate(latitude=latitude, longitude=longitude)


class Environment:
    """Base class for page state sources with mutation notifications."""

    def __init__(self) -> None:
        self._listeners: List[MutationCallback] = []

    def snapshot(self) -> EnvironmentSnapshot:
        raise NotImplementedError

    def subscribe(self, callback: MutationCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def watch(self) -> None:
        """Runs until cancelled, emitting mutations. Push-based sources need nothing here."""
        return None

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception:
                LOGGER.exception("Mutation listener failed")


class MemoryEnvironment(Environment):
    """In-process page state, updated by whoever embeds the watcher."""

    def __init__(self, page_url: Optional[str] = None, elements: Optional[Mapping[str, Optional[str]]] = None) -> None:
        super().__init__()
        self._page_url = page_url
        self._elements: Dict[str, Optional[str]] = dict(elements or {})

    def snapshot(self) -> EnvironmentSnapshot:
        return EnvironmentSnapshot(page_url=self._page_url, element_sources=dict(self._elements))

    def set_page_url(self, url: Optional[str]) -> None:
        self._page_url = url

    def set_element_src(self, element_id: str, src: Optional[str]) -> None:
        self._elements[element_id] = src
        self._notify()

    def remove_element(self, element_id: str) -> None:
        if element_id in self._elements:
            del self._elements[element_id]
            self._notify()


class SnapshotFileEnvironment(Environment):
    """
    Reads page state from a JSON file written by a browser-side hook::

        {"page_url": "...", "elements": {"PanoramaIframe": {"src": "..."}}}

    A change in the file's modification time counts as a mutation.
    """

    def __init__(self, path: Path, *, watch_interval: float = 0.05) -> None:
        super().__init__()
        self._path = Path(path)
        self._watch_interval = watch_interval
        self._last_mtime: Optional[float] = None

    @property
    def path(self) -> Path:
        return self._path

    def snapshot(self) -> EnvironmentSnapshot:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return EnvironmentSnapshot()

        data = json.loads(text)
        elements: Dict[str, Optional[str]] = {}
        for element_id, attributes in (data.get("elements") or {}).items():
            src = attributes.get("src") if isinstance(attributes, dict) else None
            elements[element_id] = src
        return EnvironmentSnapshot(page_url=data.get("page_url"), element_sources=elements)

    def poll_mutation(self) -> bool:
        """Returns True (and notifies listeners) when the file changed since the last poll."""
        try:
            mtime: Optional[float] = self._path.stat().st_mtime
        except FileNotFoundError:
            mtime = None
        if mtime == self._last_mtime:
            return False
        self._last_mtime = mtime
        self._notify()
        return True

    async def watch(self) -> None:
        while True:
            try:
                self.poll_mutation()
            except OSError as exc:
                # The page hook may hold the file mid-rewrite; try again next tick.
                LOGGER.warning("Unable to stat %s: %s", self._path, exc)
            await asyncio.sleep(self._watch_interval)


__all__ = [
    "Environment",
    "EnvironmentSnapshot",
    "InvalidLocationKey",
    "MemoryEnvironment",
    "SnapshotFileEnvironment",
    "extract_location_key",
    "parse_location_key",
]
