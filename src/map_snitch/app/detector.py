"""Decides when the viewer shows a genuinely new coordinate."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from map_snitch.data.environment import Environment, extract_location_key, parse_location_key
from map_snitch.data.geography import Coordinate

LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[["LocationChange"], None]


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class ChangeDetectorState:
    last_seen_key: Optional[str] = None
    last_accepted_at_ms: int = 0
    generation: int = 0


@dataclass(frozen=True)
class LocationChange:
    key: str
    coordinate: Coordinate
    accepted_at_ms: int
    generation: int


class ChangeDetector:
    """
    Single entry point shared by every trigger (interval poll, mutation
    observer, idle fallback).

    A key is accepted when it differs from the last accepted key and more
    than ``min_spacing_ms`` has passed since the previous acceptance. A key
    seen inside that window is not remembered; the next check simply
    compares again.
    """

    def __init__(
        self,
        environment: Environment,
        *,
        viewer_id: str = "PanoramaIframe",
        min_spacing_ms: int = 100,
        clock: Callable[[], int] = monotonic_ms,
        state: Optional[ChangeDetectorState] = None,
    ) -> None:
        self._environment = environment
        self._viewer_id = viewer_id
        self._min_spacing_ms = min_spacing_ms
        self._clock = clock
        self.state = state or ChangeDetectorState(last_accepted_at_ms=clock() - min_spacing_ms - 1)
        self._listeners: List[ChangeListener] = []
        self._rejected_key: Optional[str] = None

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def viewer_present(self) -> bool:
        try:
            return self._environment.snapshot().has_element(self._viewer_id)
        except Exception as exc:
            LOGGER.warning("Unable to read viewer state: %s", exc)
            return False

    def check(self) -> Optional[LocationChange]:
        # No awaits in here: the state update must not interleave with another check.
        try:
            key = extract_location_key(self._environment.snapshot(), self._viewer_id)
        except Exception as exc:
            LOGGER.warning("Error checking location: %s", exc)
            return None

        if not key or key == self.state.last_seen_key:
            return None

        now = self._clock()
        if now - self.state.last_accepted_at_ms <= self._min_spacing_ms:
            return None

        try:
            coordinate = parse_location_key(key)
        except ValueError as exc:
            # The same bad key is re-read on every poll until the viewer moves on.
            level = logging.DEBUG if key == self._rejected_key else logging.WARNING
            LOGGER.log(level, "Ignoring malformed location %r: %s", key, exc)
            self._rejected_key = key
            return None

        self._rejected_key = None
        self.state.last_seen_key = key
        self.state.last_accepted_at_ms = now
        self.state.generation += 1
        change = LocationChange(
            key=key,
            coordinate=coordinate,
            accepted_at_ms=now,
            generation=self.state.generation,
        )
        LOGGER.info("Location change detected: %s", key)

        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                LOGGER.exception("Change listener failed for %s", key)
        return change

    def is_current(self, key: str, generation: Optional[int] = None) -> bool:
        """A key alone can come back (A, B, A); pass the generation to pin one acceptance."""
        if generation is not None and generation != self.state.generation:
            return False
        return self.state.last_seen_key == key

    def idle_for_ms(self) -> int:
        return self._clock() - self.state.last_accepted_at_ms


__all__ = ["ChangeDetector", "ChangeDetectorState", "LocationChange", "monotonic_ms"]
