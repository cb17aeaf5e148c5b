"""Minimal configuration loader for the map viewer location watcher."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str, *, default: bool = False) -> bool:
    truthy = {"1", "true", "yes", "on"}
    falsy = {"0", "false", "no", "off"}
    text = value.strip().lower()
    if text in truthy:
        return True
    if text in falsy:
        return False
    return default


def _as_optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


def _positive_int(name: str, default: str) -> int:
    value = int(os.getenv(name, default))
    if value <= 0:
        raise RuntimeError(f"{name} must be a positive number of milliseconds")
    return value


@dataclass(frozen=True)
class Settings:
    nominatim_url: str
    timezone_api_url: str
    user_agent: str
    http_timeout: Optional[float]
    viewer_element_id: str
    poll_interval_ms: int
    min_spacing_ms: int
    idle_check_interval_ms: int
    idle_fallback_ms: int
    snapshot_path: Path
    preview_dir: Path
    preview_enabled: bool
    log_level: str

    @classmethod
    def load(cls) -> "Settings":
        preview_dir = Path(os.getenv("SNITCH_PREVIEW_DIR", "var/previews")).resolve()
        preview_dir.mkdir(parents=True, exist_ok=True)

        return cls(
            nominatim_url=os.getenv("SNITCH_NOMINATIM_URL", "https://nominatim.openstreetmap.org"),
            timezone_api_url=os.getenv("SNITCH_TIMEZONE_API_URL", "https://timeapi.io/api"),
            user_agent=os.getenv("SNITCH_USER_AGENT", "map-snitch/1.0"),
            http_timeout=_as_optional_float(os.getenv("SNITCH_HTTP_TIMEOUT")),
            viewer_element_id=os.getenv("SNITCH_VIEWER_ID", "PanoramaIframe"),
            poll_interval_ms=_positive_int("SNITCH_POLL_INTERVAL_MS", "25"),
            min_spacing_ms=_positive_int("SNITCH_MIN_SPACING_MS", "100"),
            idle_check_interval_ms=_positive_int("SNITCH_IDLE_CHECK_MS", "1000"),
            idle_fallback_ms=_positive_int("SNITCH_IDLE_FALLBACK_MS", "5000"),
            snapshot_path=Path(os.getenv("SNITCH_SNAPSHOT_PATH", "var/viewer.json")).resolve(),
            preview_dir=preview_dir,
            preview_enabled=_as_bool(os.getenv("SNITCH_PREVIEW_ENABLED", "true"), default=True),
            log_level=os.getenv("SNITCH_LOG_LEVEL", "INFO"),
        )
