"""Tests for trigger wiring, stale-result dropping and failure isolation."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Set

from map_snitch.app.detector import ChangeDetector
from map_snitch.app.scheduler import ObservationScheduler
from map_snitch.config import Settings
from map_snitch.data.environment import MemoryEnvironment
from map_snitch.data.geography import Coordinate
from map_snitch.pipeline.enrichment import LocationRecord

VIEWER = "PanoramaIframe"


class FakeClock:
    def __init__(self, now: int = 10_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class RecordingPresenter:
    def __init__(self) -> None:
        self.records: List[LocationRecord] = []
        self.waiting = 0
        self.errors = 0

    def show_record(self, record: LocationRecord) -> None:
        self.records.append(record)

    def show_waiting(self) -> None:
        self.waiting += 1

    def show_error(self) -> None:
        self.errors += 1


class GatedEnricher:
    """Each run blocks until its location key is released."""

    def __init__(self, failing: Optional[Set[str]] = None) -> None:
        self.gates: Dict[str, asyncio.Event] = {}
        self.started: List[str] = []
        self.failing = failing or set()

    def release(self, key: str) -> None:
        self.gates.setdefault(key, asyncio.Event()).set()

    async def enrich(self, coordinate: Coordinate, location_key: Optional[str] = None) -> LocationRecord:
        assert location_key is not None
        self.started.append(location_key)
        await self.gates.setdefault(location_key, asyncio.Event()).wait()
        if location_key in self.failing:
            raise RuntimeError("unexpected payload")
        return LocationRecord(
            coordinate=coordinate,
            location_key=location_key,
            country="Testland",
            state="",
            city="Testville",
            region_label="location data unavailable",
            time_zone="UTC",
            local_time="1/1/2025, 00:00:00",
        )


class InstantEnricher(GatedEnricher):
    async def enrich(self, coordinate: Coordinate, location_key: Optional[str] = None) -> LocationRecord:
        assert location_key is not None
        self.release(location_key)
        return await super().enrich(coordinate, location_key)


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = dict(
        nominatim_url="https://nominatim.example.com",
        timezone_api_url="https://time.example.com/api",
        user_agent="map-snitch-tests",
        http_timeout=None,
        viewer_element_id=VIEWER,
        poll_interval_ms=60_000,
        min_spacing_ms=100,
        idle_check_interval_ms=10,
        idle_fallback_ms=5_000,
        snapshot_path=tmp_path / "viewer.json",
        preview_dir=tmp_path / "previews",
        preview_enabled=False,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


def viewer_src(location: str) -> str:
    return f"https://maps.example.com/embed?location={location}"


def build(tmp_path: Path, env: MemoryEnvironment, enricher: GatedEnricher, clock: FakeClock):
    detector = ChangeDetector(env, viewer_id=VIEWER, min_spacing_ms=100, clock=clock)
    presenter = RecordingPresenter()
    scheduler = ObservationScheduler(make_settings(tmp_path), env, detector, enricher, presenter)  # type: ignore[arg-type]
    return scheduler, presenter


async def settle() -> None:
    for _ in range(20):
        await asyncio.sleep(0)


def test_later_started_run_wins_over_late_finisher(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: viewer_src("10,20")})
        clock = FakeClock()
        enricher = GatedEnricher()
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        assert scheduler.trigger() is not None
        await settle()

        clock.now += 500
        env.set_element_src(VIEWER, viewer_src("30,40"))
        assert scheduler.trigger() is not None
        await settle()
        assert enricher.started == ["10,20", "30,40"]
        assert scheduler.pending_runs == 2

        enricher.release("30,40")
        await settle()
        assert [record.location_key for record in presenter.records] == ["30,40"]

        enricher.release("10,20")
        await scheduler.wait_for_runs()
        assert [record.location_key for record in presenter.records] == ["30,40"]
        assert presenter.records[0].coordinate == Coordinate(30.0, 40.0)
        assert presenter.errors == 0

    asyncio.run(scenario())


class SequencedEnricher(GatedEnricher):
    """Gates each run by its start order (1, 2, ...) instead of its key."""

    def __init__(self, failing_runs: Optional[Set[int]] = None) -> None:
        super().__init__()
        self.failing_runs = failing_runs or set()

    async def enrich(self, coordinate: Coordinate, location_key: Optional[str] = None) -> LocationRecord:
        assert location_key is not None
        self.started.append(location_key)
        run = len(self.started)
        await self.gates.setdefault(str(run), asyncio.Event()).wait()
        if run in self.failing_runs:
            raise RuntimeError("unexpected payload")
        return LocationRecord(
            coordinate=coordinate,
            location_key=location_key,
            country=f"run{run}",
            state="",
            city="Testville",
            region_label="location data unavailable",
            time_zone="UTC",
            local_time="1/1/2025, 00:00:00",
        )


def test_returning_key_does_not_revive_superseded_run(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: viewer_src("10,20")})
        clock = FakeClock()
        enricher = SequencedEnricher(failing_runs={1})
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        scheduler.trigger()
        clock.now += 500
        env.set_element_src(VIEWER, viewer_src("30,40"))
        scheduler.trigger()
        clock.now += 500
        env.set_element_src(VIEWER, viewer_src("10,20"))
        scheduler.trigger()
        await settle()
        assert enricher.started == ["10,20", "30,40", "10,20"]

        for run in ("3", "2", "1"):
            enricher.release(run)
            await settle()
        await scheduler.wait_for_runs()

        assert [record.country for record in presenter.records] == ["run3"]
        assert presenter.errors == 0

    asyncio.run(scenario())


def test_returning_key_drops_late_success_of_first_run(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: viewer_src("10,20")})
        clock = FakeClock()
        enricher = SequencedEnricher()
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        for location in ("10,20", "30,40", "10,20"):
            env.set_element_src(VIEWER, viewer_src(location))
            assert scheduler.trigger() is not None
            clock.now += 500
        await settle()

        enricher.release("3")
        await settle()
        enricher.release("1")
        enricher.release("2")
        await scheduler.wait_for_runs()

        assert [record.country for record in presenter.records] == ["run3"]

    asyncio.run(scenario())


def test_run_failure_shows_error_and_detection_continues(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: viewer_src("10,20")})
        clock = FakeClock()
        enricher = InstantEnricher(failing={"10,20"})
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        scheduler.trigger()
        await scheduler.wait_for_runs()
        assert presenter.errors == 1
        assert presenter.records == []

        clock.now += 500
        env.set_element_src(VIEWER, viewer_src("30,40"))
        scheduler.trigger()
        await scheduler.wait_for_runs()
        assert [record.location_key for record in presenter.records] == ["30,40"]

    asyncio.run(scenario())


def test_stale_failure_is_not_surfaced(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: viewer_src("10,20")})
        clock = FakeClock()
        enricher = GatedEnricher(failing={"10,20"})
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        scheduler.trigger()
        clock.now += 500
        env.set_element_src(VIEWER, viewer_src("30,40"))
        scheduler.trigger()

        enricher.release("10,20")
        enricher.release("30,40")
        await scheduler.wait_for_runs()
        assert presenter.errors == 0
        assert [record.location_key for record in presenter.records] == ["30,40"]

    asyncio.run(scenario())


def test_start_shows_waiting_and_reacts_to_mutations(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(page_url="https://openguessr.com/")
        clock = FakeClock()
        enricher = InstantEnricher()
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        await scheduler.start()
        try:
            assert presenter.waiting == 1
            assert presenter.records == []

            env.set_element_src(VIEWER, viewer_src("51.5,-0.12"))
            await scheduler.wait_for_runs()
            assert [record.location_key for record in presenter.records] == ["51.5,-0.12"]

            # Same key again from another mutation: no second run.
            env.set_element_src(VIEWER, viewer_src("51.5,-0.12"))
            await scheduler.wait_for_runs()
            assert enricher.started == ["51.5,-0.12"]
        finally:
            await scheduler.stop()

    asyncio.run(scenario())


def test_idle_fallback_catches_missed_mutations(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: None})
        clock = FakeClock()
        enricher = InstantEnricher()
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        await scheduler.start()
        try:
            assert presenter.waiting == 0
            # Let the first poll pass; the next one is a minute away.
            await asyncio.sleep(0.05)
            # Page address changes do not fire mutation callbacks.
            env.set_page_url("https://openguessr.com/?location=48.85,2.35")
            clock.now += 10_000
            for _ in range(50):
                if presenter.records:
                    break
                await asyncio.sleep(0.01)
            await scheduler.wait_for_runs()
            assert [record.location_key for record in presenter.records] == ["48.85,2.35"]
        finally:
            await scheduler.stop()

    asyncio.run(scenario())


def test_malformed_location_never_starts_a_run(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: viewer_src("not,a,number")})
        clock = FakeClock()
        enricher = InstantEnricher()
        scheduler, presenter = build(tmp_path, env, enricher, clock)

        assert await scheduler.run_once() is None
        assert enricher.started == []
        assert presenter.records == []
        assert presenter.errors == 0

    asyncio.run(scenario())


def test_run_once_delivers_record(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(page_url="https://openguessr.com/?locationSearch=35.68,139.76")
        enricher = InstantEnricher()
        scheduler, presenter = build(tmp_path, env, enricher, FakeClock())

        change = await scheduler.run_once()

        assert change is not None and change.key == "35.68,139.76"
        assert presenter.waiting == 1
        assert [record.location_key for record in presenter.records] == ["35.68,139.76"]

    asyncio.run(scenario())


def test_stop_cancels_pending_runs(tmp_path: Path) -> None:
    async def scenario() -> None:
        env = MemoryEnvironment(elements={VIEWER: viewer_src("10,20")})
        enricher = GatedEnricher()
        scheduler, presenter = build(tmp_path, env, enricher, FakeClock())

        await scheduler.start()
        await settle()
        assert scheduler.pending_runs == 1

        await scheduler.stop()
        assert scheduler.pending_runs == 0
        assert presenter.records == []

    asyncio.run(scenario())
