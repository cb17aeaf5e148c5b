"""Coordinates change detection, enrichment runs, and panel updates."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Set

from map_snitch.app.detector import ChangeDetector, LocationChange
from map_snitch.config import Settings
from map_snitch.data.environment import Environment
from map_snitch.display.panel import Presenter
from map_snitch.pipeline.enrichment import LocationEnricher

LOGGER = logging.getLogger(__name__)


class ObservationScheduler:
    """
    Drives ``ChangeDetector.check`` from three independent triggers and
    delivers enrichment results, dropping any run whose acceptance (key and
    generation) has been superseded by the time it finishes.

    Mutation callbacks must arrive on the event loop thread.
    """

    def __init__(
        self,
        settings: Settings,
        environment: Environment,
        detector: ChangeDetector,
        enricher: LocationEnricher,
        presenter: Presenter,
    ) -> None:
        self._settings = settings
        self._environment = environment
        self._detector = detector
        self._enricher = enricher
        self._presenter = presenter
        self._triggers: List[asyncio.Task] = []
        self._runs: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def pending_runs(self) -> int:
        return len(self._runs)

    def trigger(self, source: str = "manual") -> Optional[LocationChange]:
        change = self._detector.check()
        if change is not None:
            LOGGER.debug("Change accepted via %s trigger", source)
            self._launch(change)
        return change

    def _launch(self, change: LocationChange) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(change))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    async def _run(self, change: LocationChange) -> None:
        LOGGER.info("Processing new location: %s", change.key)
        try:
            record = await self._enricher.enrich(change.coordinate, change.key)
        except Exception:
            LOGGER.exception("Enrichment failed for %s", change.key)
            if self._detector.is_current(change.key, change.generation):
                self._presenter.show_error()
            return

        if not self._detector.is_current(change.key, change.generation):
            LOGGER.debug("Dropping stale result for %s", change.key)
            return
        try:
            self._presenter.show_record(record)
        except Exception:
            LOGGER.exception("Presenter failed for %s", change.key)

    async def start(self) -> None:
        if self._triggers:
            return
        if not self._detector.viewer_present():
            self._presenter.show_waiting()
        self.trigger("startup")

        self._unsubscribe = self._environment.subscribe(lambda: self.trigger("mutation"))
        loop = asyncio.get_running_loop()
        self._triggers = [
            loop.create_task(self._poll_loop()),
            loop.create_task(self._idle_loop()),
            loop.create_task(self._environment.watch()),
        ]
        LOGGER.info(
            "Observing viewer every %sms (idle fallback after %sms)",
            self._settings.poll_interval_ms,
            self._settings.idle_fallback_ms,
        )

    async def _poll_loop(self) -> None:
        interval = self._settings.poll_interval_ms / 1000
        while True:
            try:
                self.trigger("poll")
            except Exception as exc:  # pragma: no cover - defensive logging
                LOGGER.exception("Poll check failed: %s", exc)
            await asyncio.sleep(interval)

    async def _idle_loop(self) -> None:
        interval = self._settings.idle_check_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                if self._detector.idle_for_ms() > self._settings.idle_fallback_ms:
                    self.trigger("idle")
            except Exception as exc:  # pragma: no cover - defensive logging
                LOGGER.exception("Idle check failed: %s", exc)

    async def wait_for_runs(self) -> None:
        while self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    async def run_once(self) -> Optional[LocationChange]:
        if not self._detector.viewer_present():
            self._presenter.show_waiting()
        change = self.trigger("once")
        await self.wait_for_runs()
        return change

    async def run_forever(self, stop: asyncio.Event) -> None:
        await self.start()
        try:
            await stop.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks = self._triggers + list(self._runs)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._triggers = []
        self._runs.clear()
        LOGGER.info("Observation stopped")


__all__ = ["ObservationScheduler"]
