"""Clip normalization, node selectors and shadow/blur padding."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

NODE_ID_ATTRIBUTE = "data-bake-id"

_PX_VALUE = re.compile(r"-?\d*\.?\d+px")
_DROP_SHADOW = re.compile(r"drop-shadow\(((?:[^()]|\([^()]*\))*)\)", re.IGNORECASE)
_BLUR = re.compile(r"blur\(([^)]+)\)", re.IGNORECASE)
_INSET = re.compile(r"\binset\b", re.IGNORECASE)


@dataclass(frozen=True)
class Clip:
    x: int
    y: int
    width: int
    height: int

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    def contains(self, x: float, y: float, width: float, height: float) -> bool:
        return (
            self.x <= x
            and self.y <= y
            and self.x + self.width >= x + width
            and self.y + self.height >= y + height
        )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _finite(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_clip(raw: dict[str, Any] | None) -> Clip | None:
    """Integer, >=1px, non-negative-origin clip; None for a degenerate box.

    A negative origin is clamped to 0 and the size shrinks by the clamped
    amount so the clip never grows past the source rectangle.
    """
    if not isinstance(raw, dict):
        return None
    width = _finite(raw.get("width"))
    height = _finite(raw.get("height"))
    if width is None or height is None or width <= 0 or height <= 0:
        return None

    x = _finite(raw.get("x")) or 0.0
    y = _finite(raw.get("y")) or 0.0
    clip_x = max(0.0, x)
    clip_y = max(0.0, y)
    return Clip(
        x=_round_half_up(clip_x),
        y=_round_half_up(clip_y),
        width=max(1, _round_half_up(width - (clip_x - x))),
        height=max(1, _round_half_up(height - (clip_y - y))),
    )


def node_selector(node_id: object) -> str:
    escaped = str(node_id or "").replace("\\", "\\\\").replace('"', '\\"')
    return f'[{NODE_ID_ATTRIBUTE}="{escaped}"]'


def _px_numbers(text: str) -> list[float]:
    return [float(v[:-2]) for v in _PX_VALUE.findall(text)]


def split_layers(value: str) -> list[str]:
    """Split a comma-separated CSS list, ignoring commas inside parentheses."""
    parts: list[str] = []
    depth = 0
    current = ""
    for ch in value:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += ch
    if current.strip():
        parts.append(current)
    return parts


def box_shadow_padding(box_shadow: str | None) -> float:
    """Largest outset extent over non-inset layers: max(|dx|, |dy|) + blur + spread."""
    if not box_shadow or box_shadow.strip() == "none":
        return 0.0
    best = 0.0
    for layer in split_layers(box_shadow):
        if _INSET.search(layer):
            continue
        nums = _px_numbers(layer) + [0.0, 0.0, 0.0, 0.0]
        pad = max(abs(nums[0]), abs(nums[1])) + nums[2] + nums[3]
        best = max(best, pad)
    return best


def drop_shadow_padding(filter_value: str | None) -> float:
    if not filter_value or filter_value.strip() == "none":
        return 0.0
    best = 0.0
    for inner in _DROP_SHADOW.findall(filter_value):
        nums = _px_numbers(inner) + [0.0, 0.0, 0.0]
        best = max(best, max(abs(nums[0]), abs(nums[1])) + nums[2])
    return best


def blur_padding(filter_value: str | None) -> float:
    """A blur bleeds roughly twice its radius."""
    if not filter_value or filter_value.strip() == "none":
        return 0.0
    best = 0.0
    for inner in _BLUR.findall(filter_value):
        nums = _px_numbers(inner)
        if nums:
            best = max(best, abs(nums[0]) * 2)
    return best


def shadow_padding(box_shadow: str | None, filter_value: str | None) -> float:
    return max(
        box_shadow_padding(box_shadow),
        drop_shadow_padding(filter_value),
        blur_padding(filter_value),
    )


def to_padding(value: Any) -> float:
    number = _finite(value)
    return max(0.0, number) if number is not None else 0.0


def padded_rect(rect: dict[str, Any], padding: float) -> dict[str, float]:
    return {
        "x": float(rect.get("x", 0)) - padding,
        "y": float(rect.get("y", 0)) - padding,
        "width": float(rect.get("width", 0)) + padding * 2,
        "height": float(rect.get("height", 0)) + padding * 2,
    }


__all__ = [
    "NODE_ID_ATTRIBUTE",
    "Clip",
    "blur_padding",
    "box_shadow_padding",
    "drop_shadow_padding",
    "node_selector",
    "normalize_clip",
    "padded_rect",
    "shadow_padding",
    "split_layers",
    "to_padding",
]
