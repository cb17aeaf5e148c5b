"""Render the location summary panel."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from PIL import Image, ImageDraw, ImageFont

from map_snitch.pipeline.enrichment import LocationRecord

LOGGER = logging.getLogger(__name__)

WAITING_MESSAGE = "Waiting for map to load..."
ERROR_MESSAGE = "Error processing location"

BACKGROUND = (26, 26, 26)
TITLE_BACKGROUND = (45, 45, 45)
LABEL_COLOR = (136, 136, 136)
VALUE_COLOR = (255, 255, 255)
LINK_COLOR = (66, 133, 244)


class Presenter(Protocol):
    def show_record(self, record: LocationRecord) -> None: ...

    def show_waiting(self) -> None: ...

    def show_error(self) -> None: ...


def describe_record(record: LocationRecord) -> List[Tuple[str, str]]:
    """Labelled panel sections in display order, skipping empty values."""
    sections = [
        ("Time Zone", f"{record.time_zone}\n{record.local_time}"),
        ("Country", record.country),
        ("Region", record.region_label),
        ("State", record.state),
        ("City", record.city),
    ]
    return [(label, value) for label, value in sections if value]


class PanelLayout:
    """Draws a dark title bar followed by label/value sections."""

    def __init__(self, width: int = 300, *, title: str = "Map Snitch") -> None:
        self.width = width
        self.title = title
        self.font = ImageFont.load_default()

    def compose_record(self, record: LocationRecord) -> Image.Image:
        return self._compose(describe_record(record), footer=record.maps_url)

    def compose_message(self, message: str) -> Image.Image:
        return self._compose([("", message)])

    def _line_height(self, draw: ImageDraw.ImageDraw, text: str) -> int:
        bbox = draw.textbbox((0, 0), text or " ", font=self.font)
        return bbox[3] - bbox[1]

    def _compose(self, sections: List[Tuple[str, str]], footer: Optional[str] = None) -> Image.Image:
        padding = 12
        spacing = 4
        section_gap = 10

        # Measure on a scratch canvas first so the panel height fits the text.
        scratch = ImageDraw.Draw(Image.new("RGB", (1, 1)))
        title_height = self._line_height(scratch, self.title) + 2 * padding

        body_height = 0
        for label, value in sections:
            if label:
                body_height += self._line_height(scratch, label) + spacing
            for line in value.split("\n"):
                body_height += self._line_height(scratch, line) + spacing
            body_height += section_gap
        if footer:
            body_height += self._line_height(scratch, footer) + spacing

        height = title_height + body_height + 2 * padding
        canvas = Image.new("RGB", (self.width, height), BACKGROUND)
        draw = ImageDraw.Draw(canvas)

        draw.rectangle((0, 0, self.width, title_height), fill=TITLE_BACKGROUND)
        draw.text((padding, padding), self.title, fill=VALUE_COLOR, font=self.font)

        text_y = title_height + padding
        for label, value in sections:
            if label:
                draw.text((padding, text_y), label, fill=LABEL_COLOR, font=self.font)
                text_y += self._line_height(draw, label) + spacing
            for line in value.split("\n"):
                draw.text((padding, text_y), line, fill=VALUE_COLOR, font=self.font)
                text_y += self._line_height(draw, line) + spacing
            text_y += section_gap

        if footer:
            draw.text((padding, text_y), footer, fill=LINK_COLOR, font=self.font)
        return canvas


class PanelPresenter:
    """Logs each panel state and keeps the latest rendering on disk."""

    def __init__(self, layout: PanelLayout, preview_dir: Optional[Path] = None) -> None:
        self._layout = layout
        self._preview_dir = preview_dir
        self.last_record: Optional[LocationRecord] = None

    def show_record(self, record: LocationRecord) -> None:
        self.last_record = record
        for label, value in describe_record(record):
            LOGGER.info("%s: %s", label, value.replace("\n", " "))
        LOGGER.info("Map: %s", record.maps_url)
        self._save(self._layout.compose_record(record))

    def show_waiting(self) -> None:
        LOGGER.info(WAITING_MESSAGE)
        self._save(self._layout.compose_message(WAITING_MESSAGE))

    def show_error(self) -> None:
        LOGGER.error(ERROR_MESSAGE)
        self._save(self._layout.compose_message(ERROR_MESSAGE))

    def _save(self, image: Image.Image) -> Optional[Path]:
        if self._preview_dir is None:
            return None
        self._preview_dir.mkdir(parents=True, exist_ok=True)
        path = self._preview_dir / "latest.png"
        image.save(path)
        return path


__all__ = ["PanelLayout", "PanelPresenter", "Presenter", "describe_record"]
