"""Main application entry point for the map viewer location watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional, Sequence

from map_snitch.app.detector import ChangeDetector
from map_snitch.app.scheduler import ObservationScheduler
from map_snitch.config import Settings
from map_snitch.data.environment import SnapshotFileEnvironment
from map_snitch.data.nominatim_client import NominatimClient
from map_snitch.data.timezone_client import TimeZoneClient
from map_snitch.display.panel import PanelLayout, PanelPresenter
from map_snitch.pipeline.enrichment import LocationEnricher

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_scheduler(
    settings: Settings,
    snapshot_path: Optional[Path] = None,
    *,
    preview: bool = True,
) -> ObservationScheduler:
    environment = SnapshotFileEnvironment(snapshot_path or settings.snapshot_path)
    detector = ChangeDetector(
        environment,
        viewer_id=settings.viewer_element_id,
        min_spacing_ms=settings.min_spacing_ms,
    )
    enricher = LocationEnricher(NominatimClient(settings), TimeZoneClient(settings))
    preview_dir = settings.preview_dir if preview and settings.preview_enabled else None
    presenter = PanelPresenter(PanelLayout(), preview_dir=preview_dir)
    return ObservationScheduler(settings, environment, detector, enricher, presenter)


async def run_loop(scheduler: ObservationScheduler) -> None:
    stop = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Shutdown signal received.")
        stop.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))

    logger.info("Initializing...")
    await scheduler.run_forever(stop)
    logger.info("Done.")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a map viewer and summarize the location it shows")
    parser.add_argument("--snapshot", type=Path, help="Viewer snapshot file written by the page hook")
    parser.add_argument("--once", action="store_true", help="Check once, print the summary and exit")
    parser.add_argument("--no-preview", action="store_true", help="Do not write the panel image to the preview directory")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    settings = Settings.load()
    configure_logging(settings.log_level)

    scheduler = build_scheduler(settings, args.snapshot, preview=not args.no_preview)
    if args.once:
        change = asyncio.run(scheduler.run_once())
        if change is None:
            logger.info("No location available")
        return
    asyncio.run(run_loop(scheduler))


if __name__ == "__main__":
    main()
