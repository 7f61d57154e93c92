from __future__ import annotations

import io

import pytest
from conftest import png_bytes
from PIL import Image

from ui_baker.repair.pixels import FALLBACK_ANALYSIS, analyze_pixels, describe_auto, estimate_levels


def _split_png(left: tuple[int, int, int, int], right: tuple[int, int, int, int], size=(40, 20)) -> bytes:
    image = Image.new("RGBA", size, right)
    image.paste(Image.new("RGBA", (size[0] // 2, size[1]), left), (0, 0))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def test_uniform_mid_gray_follows_floor_formula() -> None:
    # A floor above 10 drives contrast up and brightness down, clamped to the limits.
    analysis = analyze_pixels(png_bytes((128, 128, 128, 255)))
    assert analysis.min_luma == analysis.max_luma == 128
    assert analysis.avg_luma == pytest.approx(128, abs=0.01)
    assert analysis.sample_count == 8
    assert analysis.contrast == 1.38
    assert analysis.brightness == pytest.approx(0.749, abs=0.001)
    assert analysis.saturate == 1.1
    assert analysis.filter == "contrast(1.380) saturate(1.100) brightness(0.749)"


def test_dark_floor_keeps_default_levels() -> None:
    analysis = analyze_pixels(_split_png((0, 0, 0, 255), (200, 200, 200, 255)))
    assert analysis.min_luma == 0
    assert analysis.max_luma == 200
    assert analysis.avg_luma == pytest.approx(100, abs=0.01)
    assert analysis.contrast == 1.08
    assert analysis.brightness == 0.98


def test_fully_transparent_pixels_are_ignored() -> None:
    analysis = analyze_pixels(_split_png((255, 255, 255, 0), (100, 100, 100, 255)))
    assert analysis.sample_count == 4
    assert analysis.min_luma == analysis.max_luma == 100


@pytest.mark.parametrize("payload", [b"", None, b"definitely not a png", png_bytes((0, 0, 0, 0))])
def test_undecodable_or_empty_input_falls_back(payload) -> None:
    assert analyze_pixels(payload) == FALLBACK_ANALYSIS


def test_estimate_levels_clamps() -> None:
    contrast, brightness, saturate = estimate_levels(250, 250)
    assert contrast == 1.38
    assert brightness == 0.72
    assert 1.02 <= saturate <= 1.22
    _, bright_dark, sat_dark = estimate_levels(0, 0)
    assert bright_dark == pytest.approx(0.98 + 80 / 255 * 0.08)
    assert sat_dark == pytest.approx(1.1 + 128 / 255 * 0.05)


def test_describe_auto() -> None:
    analysis = analyze_pixels(png_bytes((128, 128, 128, 255)))
    assert describe_auto(analysis) == "Auto-levels (Contrast: +38%, Bright: -25%)"
    assert "manual" in describe_auto(analysis, "contrast(2)")
