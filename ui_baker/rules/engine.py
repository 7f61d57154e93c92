"""Bake rule engine: per-node capture heuristics with audit tokens.

Rules read the analysed geometry and computed styles of a node (never the
raw DOM). Each rule can be disabled on its own through ``RuleToggles``;
a disabled rule leaves the node on the path it took before the rule existed.

Thresholds:

- opacity-decoupled: atomic node, 0 < opacity < 0.999.
- low-alpha-context-capture: Container, 0 < background alpha <= 0.35,
  opacity >= 0.999, no background image, area >= 2% of the viewport,
  not a mask layer, some ancestor paints.
- background-stack-composite: depth <= 2, covers >= 95% of the viewport,
  Image or background image, at least one later fullscreen sibling.
- underlay-faint-border-suppressed: only under preserved underlay,
  0 < border width <= 1.5px and border alpha <= 0.12.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from ..config import RuleToggles
from .trace import (
    BACKGROUND_STACK_COMPOSITE,
    LOW_ALPHA_CONTEXT_CAPTURE,
    OPACITY_DECOUPLED,
    PRESERVE_SCENE_UNDERLAY,
    UNDERLAY_FAINT_BORDER_SUPPRESSED,
    RuleTrace,
    RuleTraceToken,
)

OPACITY_EPSILON = 0.999
LOW_ALPHA_MAX = 0.35
LOW_ALPHA_MIN_AREA_RATIO = 0.02
FULLSCREEN_RATIO = 0.95
BACKGROUND_STACK_MAX_DEPTH = 2
FAINT_BORDER_MAX_WIDTH = 1.5
FAINT_BORDER_MAX_ALPHA = 0.12

_RGBA = re.compile(r"rgba?\(([^)]+)\)", re.IGNORECASE)
_PX = re.compile(r"(-?\d*\.?\d+)px")


def color_alpha(value: Any) -> float:
    """Alpha of a computed CSS color; 0 for transparent or unparseable input."""
    text = str(value or "").strip().lower()
    if not text or text == "transparent":
        return 0.0
    match = _RGBA.search(text)
    if not match:
        return 1.0 if text not in ("none", "initial", "inherit") else 0.0
    parts = [p.strip() for p in re.split(r"[,\s/]+", match.group(1)) if p.strip()]
    if len(parts) < 4:
        return 1.0
    raw = parts[3]
    try:
        alpha = float(raw[:-1]) / 100 if raw.endswith("%") else float(raw)
    except ValueError:
        return 1.0
    return max(0.0, min(1.0, alpha))


def has_background_image(styles: dict[str, Any]) -> bool:
    value = str(styles.get("backgroundImage") or "").strip().lower()
    return bool(value) and value != "none"


def paints(node: dict[str, Any]) -> bool:
    styles = node.get("styles") or {}
    return color_alpha(styles.get("backgroundColor")) > 0 or has_background_image(styles)


def border_metrics(styles: dict[str, Any]) -> tuple[float, float]:
    """(width px, color alpha) from the ``border`` shorthand or longhands."""
    shorthand = str(styles.get("border") or "")
    width_raw = styles.get("borderWidth") or styles.get("borderTopWidth") or shorthand
    match = _PX.search(str(width_raw))
    width = float(match.group(1)) if match else 0.0
    color = styles.get("borderColor") or styles.get("borderTopColor") or shorthand
    style_word = str(styles.get("borderStyle") or shorthand).lower()
    if "none" in style_word.split() or "hidden" in style_word.split():
        width = 0.0
    return width, color_alpha(color) if width > 0 else 0.0


def to_float(value: Any, fallback: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    return parsed if parsed == parsed else fallback


def rect_size(node: dict[str, Any]) -> tuple[float, float]:
    rect = node.get("rect") or {}
    return max(0.0, to_float(rect.get("width"), 0.0)), max(0.0, to_float(rect.get("height"), 0.0))


def covers_viewport(node: dict[str, Any], viewport: tuple[float, float]) -> bool:
    width, height = rect_size(node)
    return width >= viewport[0] * FULLSCREEN_RATIO and height >= viewport[1] * FULLSCREEN_RATIO


def has_visual(node: dict[str, Any]) -> bool:
    return bool((node.get("visual") or {}).get("hasVisual"))


def is_atomic(node: dict[str, Any]) -> bool:
    if node.get("type") == "Image":
        return True
    if node.get("type") != "Container":
        return False
    children = node.get("children") or []
    return not any(c.get("type") in ("Image", "Container") and (has_visual(c) or c.get("type") == "Image") for c in children)


@dataclass
class CaptureDecision:
    node_id: str
    mode: str | None = None
    reasons: list[str] = field(default_factory=list)
    decouple_opacity: bool = False
    render_opacity: float = 1.0
    preserve_scene_underlay: bool = False
    suppress_underlay_faint_border: bool = False
    background_stack_node_ids: list[str] = field(default_factory=list)
    tokens: list[RuleTraceToken] = field(default_factory=list)

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.decouple_opacity:
            params["decoupleOpacity"] = True
            params["renderOpacity"] = round(self.render_opacity, 6)
        if self.preserve_scene_underlay:
            params["preserveSceneUnderlay"] = True
        if self.suppress_underlay_faint_border:
            params["suppressUnderlayFaintBorder"] = True
        if self.background_stack_node_ids:
            params["backgroundStackNodeIds"] = list(self.background_stack_node_ids)
        return params


class BakeRuleEngine:
    def __init__(self, toggles: RuleToggles | None = None, trace: RuleTrace | None = None) -> None:
        self._toggles = toggles
        self.trace = trace or RuleTrace()

    @property
    def toggles(self) -> RuleToggles:
        # Env is read per call so switches apply without rebuilding anything.
        return self._toggles or RuleToggles.from_env()

    def evaluate(
        self,
        node: dict[str, Any],
        ancestors: list[dict[str, Any]],
        viewport: tuple[float, float],
    ) -> CaptureDecision:
        toggles = self.toggles
        decision = CaptureDecision(node_id=str(node.get("id") or ""))

        if toggles.background_stack_composite:
            self._background_stack(node, ancestors, viewport, decision)
        if decision.mode != "backgroundStack":
            if toggles.opacity_decoupled:
                self._opacity_decoupled(node, decision)
            if toggles.low_alpha_context_capture:
                self._low_alpha_context(node, ancestors, viewport, decision)
            if toggles.underlay_faint_border and decision.preserve_scene_underlay:
                self._faint_border(node, decision)
        return decision

    def _fire(self, decision: CaptureDecision, rule: str, condition: str) -> None:
        decision.tokens.append(self.trace.record(rule, decision.node_id, condition))
        decision.reasons.append(rule)

    def _opacity_decoupled(self, node: dict[str, Any], decision: CaptureDecision) -> None:
        opacity = to_float((node.get("styles") or {}).get("opacity"), 1.0)
        if not is_atomic(node) or not 0 < opacity < OPACITY_EPSILON:
            return
        decision.decouple_opacity = True
        decision.render_opacity = opacity
        self._fire(decision, OPACITY_DECOUPLED, f"atomic {node.get('type')} opacity={opacity:.3f}")

    def _low_alpha_context(
        self,
        node: dict[str, Any],
        ancestors: list[dict[str, Any]],
        viewport: tuple[float, float],
        decision: CaptureDecision,
    ) -> None:
        if node.get("type") != "Container" or (node.get("visual") or {}).get("isMask"):
            return
        styles = node.get("styles") or {}
        alpha = color_alpha(styles.get("backgroundColor"))
        if not 0 < alpha <= LOW_ALPHA_MAX:
            return
        if to_float(styles.get("opacity"), 1.0) < OPACITY_EPSILON or has_background_image(styles):
            return
        width, height = rect_size(node)
        viewport_area = max(1.0, viewport[0] * viewport[1])
        if width * height < viewport_area * LOW_ALPHA_MIN_AREA_RATIO:
            return
        if not any(paints(a) for a in ancestors):
            return

        decision.mode = "inPlace"
        decision.preserve_scene_underlay = True
        self._fire(decision, LOW_ALPHA_CONTEXT_CAPTURE, f"background alpha={alpha:.3f} over painted ancestor")
        decision.reasons.append(PRESERVE_SCENE_UNDERLAY)

    def _faint_border(self, node: dict[str, Any], decision: CaptureDecision) -> None:
        width, alpha = border_metrics(node.get("styles") or {})
        if not 0 < width <= FAINT_BORDER_MAX_WIDTH or alpha > FAINT_BORDER_MAX_ALPHA:
            return
        decision.suppress_underlay_faint_border = True
        self._fire(decision, UNDERLAY_FAINT_BORDER_SUPPRESSED, f"border width={width:g}px alpha={alpha:.3f}")

    def _background_stack(
        self,
        node: dict[str, Any],
        ancestors: list[dict[str, Any]],
        viewport: tuple[float, float],
        decision: CaptureDecision,
    ) -> None:
        if len(ancestors) > BACKGROUND_STACK_MAX_DEPTH or not covers_viewport(node, viewport):
            return
        if node.get("type") != "Image" and not has_background_image(node.get("styles") or {}):
            return
        siblings = (ancestors[-1].get("children") or []) if ancestors else []
        node_id = decision.node_id
        later = False
        overlays: list[str] = []
        for sibling in siblings:
            if str(sibling.get("id") or "") == node_id:
                later = True
                continue
            if later and sibling.get("type") != "Text" and covers_viewport(sibling, viewport):
                overlays.append(str(sibling.get("id")))
        if not overlays:
            return

        decision.mode = "backgroundStack"
        decision.background_stack_node_ids = overlays
        self._fire(decision, BACKGROUND_STACK_COMPOSITE, f"depth={len(ancestors)} overlays={len(overlays)}")


__all__ = [
    "BakeRuleEngine",
    "CaptureDecision",
    "border_metrics",
    "color_alpha",
    "covers_viewport",
    "has_background_image",
    "is_atomic",
    "paints",
]
