"""Dominant-color extraction for captured images."""

from __future__ import annotations

import io
from collections import Counter
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

ALPHA_THRESHOLD = 128


@dataclass(frozen=True, slots=True)
class ColorSwatch:
    hex: str
    rgb: str

    @classmethod
    def from_rgb(cls, red: int, green: int, blue: int) -> ColorSwatch:
        return cls(hex=f"#{red:02x}{green:02x}{blue:02x}", rgb=f"rgb({red}, {green}, {blue})")

    def as_pair(self) -> tuple[str, str]:
        return self.hex, self.rgb


def quantize(value: int, step: int = 32) -> int:
    # Half-up rounding onto the bucket grid, clamped to a byte.
    return min(255, max(0, int(value / step + 0.5) * step))


def analyze_image_colors(
    payload: bytes,
    *,
    max_colors: int = 6,
    sample_budget: int = 1000,
    step: int = 32,
) -> list[ColorSwatch]:
    """Return the most frequent quantized colors, most frequent first.

    Roughly ``sample_budget`` pixels are sampled at a fixed stride;
    mostly-transparent pixels are ignored.
    """
    try:
        with Image.open(io.BytesIO(payload)) as image:
            rgba = image.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"cannot decode image: {exc}") from exc

    data = rgba.tobytes()
    pixel_count = len(data) // 4
    sample_rate = max(1, pixel_count // sample_budget)

    counts: Counter[tuple[int, int, int]] = Counter()
    for offset in range(0, pixel_count * 4, 4 * sample_rate):
        red, green, blue, alpha = data[offset : offset + 4]
        if alpha < ALPHA_THRESHOLD:
            continue
        counts[(quantize(red, step), quantize(green, step), quantize(blue, step))] += 1

    return [ColorSwatch.from_rgb(*color) for color, _ in counts.most_common(max_colors)]


__all__ = ["ALPHA_THRESHOLD", "ColorSwatch", "analyze_image_colors", "quantize"]
