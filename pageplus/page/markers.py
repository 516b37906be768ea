"""Sentinel-prefixed payloads embedded in tool output for the renderer."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

COLOR_ANALYZER_MARKER = "__PAGEPLUS__TOOL__COLORANALYZER__"
IMAGE_ZIP_MARKER = "__PAGEPLUS__TOOL__IMAGEZIPDOWNLOAD__"


def iso_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_color_marker(pairs: Sequence[tuple[str, str]]) -> str:
    return f"\n{COLOR_ANALYZER_MARKER}" + "\n".join(f"{hex_value};{rgb}" for hex_value, rgb in pairs)


def parse_color_marker(text: str) -> list[tuple[str, str]]:
    _, found, payload = text.partition(COLOR_ANALYZER_MARKER)
    if not found:
        return []
    pairs: list[tuple[str, str]] = []
    for line in payload.splitlines():
        hex_value, sep, rgb = line.strip().partition(";")
        if sep:
            pairs.append((hex_value, rgb))
    return pairs


@dataclass(frozen=True, slots=True)
class ZipDownloadMarker:
    url: str
    expires_at: datetime
    image_count: int
    size_bytes: int

    @property
    def file_size_kb(self) -> int:
        return int(self.size_bytes / 1024 + 0.5)

    def render(self) -> str:
        return (
            f"\n{IMAGE_ZIP_MARKER}\n{self.url}"
            f"\nExpires:{iso_timestamp(self.expires_at)}"
            f"\nimageCount:{self.image_count}"
            f"\nfileSizeKB:{self.file_size_kb}"
        )


def parse_zip_marker(text: str) -> dict[str, str] | None:
    """Read back the fields of a rendered zip marker, or ``None``."""
    _, found, payload = text.partition(IMAGE_ZIP_MARKER)
    if not found:
        return None
    lines = [line.strip() for line in payload.strip("\n").split("\n")]
    if len(lines) < 4:
        return None
    return {
        "url": lines[0],
        "expires": lines[1].removeprefix("Expires:"),
        "image_count": lines[2].removeprefix("imageCount:"),
        "file_size_kb": lines[3].removeprefix("fileSizeKB:"),
    }


__all__ = [
    "COLOR_ANALYZER_MARKER",
    "IMAGE_ZIP_MARKER",
    "ZipDownloadMarker",
    "format_color_marker",
    "iso_timestamp",
    "parse_color_marker",
    "parse_zip_marker",
]
