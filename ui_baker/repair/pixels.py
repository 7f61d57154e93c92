"""Histogram-based auto-levels estimator."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("ui_baker.repair.pixels")

DEFAULT_STRIDE = 10


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class LumaAnalysis:
    filter: str
    min_luma: float
    avg_luma: float
    max_luma: float
    sample_count: int
    contrast: float
    brightness: float
    saturate: float

    def to_metadata(self) -> dict[str, Any]:
        return {
            "minLuma": self.min_luma,
            "avgLuma": self.avg_luma,
            "maxLuma": self.max_luma,
            "sampleCount": self.sample_count,
            "contrast": self.contrast,
            "brightness": self.brightness,
            "saturate": self.saturate,
        }


FALLBACK_ANALYSIS = LumaAnalysis(
    filter="contrast(1.12) saturate(1.1) brightness(0.94)",
    min_luma=0,
    avg_luma=128,
    max_luma=255,
    sample_count=0,
    contrast=1.12,
    brightness=0.94,
    saturate=1.1,
)


def estimate_levels(min_luma: int, avg_luma: float) -> tuple[float, float, float]:
    """(contrast, brightness, saturate) from the luma floor and mean."""
    contrast = 1.08
    brightness = 0.94 if avg_luma > 168 else 0.98

    if min_luma > 10:
        normalized_min = min_luma / 255
        contrast = 1 + normalized_min
        brightness = 1 - normalized_min / 2

    if avg_luma > 170:
        brightness -= (avg_luma - 170) / 255 * 0.18
    elif avg_luma < 80:
        brightness += (80 - avg_luma) / 255 * 0.08

    contrast = _clamp(contrast, 1.05, 1.38)
    brightness = _clamp(brightness, 0.72, 1.03)
    saturate = _clamp(1.1 + (128 - avg_luma) / 255 * 0.05, 1.02, 1.22)
    return contrast, brightness, saturate


def analyze_pixels(png_bytes: bytes | None, stride: int = DEFAULT_STRIDE) -> LumaAnalysis:
    if not png_bytes:
        return FALLBACK_ANALYSIS
    try:
        with Image.open(io.BytesIO(png_bytes)) as raw:
            image = raw.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("pixel_analysis_decode_failed error=%s", exc)
        return FALLBACK_ANALYSIS

    width, height = image.size
    pixels = image.load()
    step = max(1, int(stride))
    histogram = [0] * 256
    total = 0.0
    samples = 0

    for y in range(0, height, step):
        for x in range(0, width, step):
            r, g, b, a = pixels[x, y]
            if a <= 0:
                continue
            luma = 0.299 * r + 0.587 * g + 0.114 * b
            histogram[int(_clamp(int(luma + 0.5), 0, 255))] += 1
            total += luma
            samples += 1

    if samples <= 0:
        return FALLBACK_ANALYSIS

    min_luma = next(i for i in range(256) if histogram[i])
    max_luma = next(i for i in range(255, -1, -1) if histogram[i])
    avg_luma = total / samples
    contrast, brightness, saturate = estimate_levels(min_luma, avg_luma)

    return LumaAnalysis(
        filter=f"contrast({contrast:.3f}) saturate({saturate:.3f}) brightness({brightness:.3f})",
        min_luma=round(float(min_luma), 2),
        avg_luma=round(avg_luma, 2),
        max_luma=round(float(max_luma), 2),
        sample_count=samples,
        contrast=round(contrast, 3),
        brightness=round(brightness, 3),
        saturate=round(saturate, 3),
    )


def describe_auto(analysis: LumaAnalysis, manual_override: str = "") -> str:
    if manual_override:
        return "Auto-levels (manual colorFilter override)"
    contrast_pct = round((analysis.contrast - 1) * 100)
    brightness_pct = round((analysis.brightness - 1) * 100)
    return f"Auto-levels (Contrast: {contrast_pct:+d}%, Bright: {brightness_pct:+d}%)"


__all__ = ["DEFAULT_STRIDE", "FALLBACK_ANALYSIS", "LumaAnalysis", "analyze_pixels", "describe_auto", "estimate_levels"]
