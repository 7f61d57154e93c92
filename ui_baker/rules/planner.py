"""Turns an analysis tree into an ordered list of bake tasks."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ..config import ResolutionConfig, build_resolution_config
from .engine import BakeRuleEngine, to_float
from .trace import NodeTrace

logger = logging.getLogger("ui_baker.rules.planner")

PLAN_FILE = "bake_plan.json"
TRACE_FILE = "rules_trace.json"
DIRECT_TEXT_TAG = "#TEXT"

_EFFECT_NONE_KEYS = ("clipPath", "maskImage", "mask", "filter", "backdropFilter", "webkitBackdropFilter")
_OVERFLOW_KEYS = ("overflow", "overflowX", "overflowY")


def _style(styles: dict[str, Any], key: str) -> str:
    return str(styles.get(key) or "").strip().lower()


def has_capture_effect(styles: dict[str, Any] | None, *, ignore_opacity: bool = False) -> bool:
    """True when the node's own styles depend on what is painted around it."""
    if not isinstance(styles, dict):
        return False
    if any(_style(styles, k) not in ("", "visible") for k in _OVERFLOW_KEYS):
        return True
    if any(_style(styles, k) not in ("", "none") for k in _EFFECT_NONE_KEYS):
        return True
    if _style(styles, "mixBlendMode") not in ("", "normal"):
        return True
    if ignore_opacity:
        return False
    return to_float(styles.get("opacity"), 1.0) < 0.999


def has_rotation(value: Any) -> bool:
    return abs(to_float(value, 0.0)) > 0.001


def has_direct_text(node: dict[str, Any]) -> bool:
    return any(
        c.get("type") == "Text" and str(c.get("tagName") or "").upper() == DIRECT_TEXT_TAG
        for c in node.get("children") or []
    )


class Planner:
    def __init__(self, resolution: ResolutionConfig | None = None, engine: BakeRuleEngine | None = None) -> None:
        self.resolution = resolution or build_resolution_config()
        self.engine = engine or BakeRuleEngine()
        self.tasks: list[dict[str, Any]] = []

    @property
    def trace(self):
        return self.engine.trace

    @property
    def content_size(self) -> tuple[int, int]:
        """Physical content size; analysed rects use the same units."""
        res = self.resolution
        width = max(1, int(round(res.logical_width * res.dpr)))
        height = max(1, int(round(res.logical_height * res.dpr)))
        return width, height

    def plan(self, analysis_tree: dict[str, Any] | None) -> list[dict[str, Any]]:
        width, height = self.content_size
        tasks: list[dict[str, Any]] = [
            {
                "id": "task-global-bg",
                "type": "CAPTURE_PAGE",
                "outputName": "bg",
                "params": {
                    "width": width,
                    "height": height,
                    "logicalWidth": self.resolution.logical_width,
                    "logicalHeight": self.resolution.logical_height,
                    "reasons": ["page-background"],
                },
            }
        ]
        skipped: set[str] = set()
        if analysis_tree:
            self._traverse(analysis_tree, [], tasks, skipped, False, False)
        self.tasks = tasks
        logger.info(
            "plan_built tasks=%d skipped=%d rules_fired=%d",
            len(tasks),
            len(skipped),
            len(self.trace.tokens),
        )
        return tasks

    def _traverse(
        self,
        node: dict[str, Any],
        ancestors: list[dict[str, Any]],
        tasks: list[dict[str, Any]],
        skipped: set[str],
        ancestor_effect: bool,
        ancestor_rotation: bool,
    ) -> None:
        node_id = str(node.get("id") or "")
        node_type = node.get("type")
        visual = node.get("visual") or {}
        self_rotation = has_rotation(node.get("rotation"))

        is_container = node_type == "Container"
        should_capture = node_type == "Image" or (is_container and bool(visual.get("hasVisual")))

        self_effect = has_capture_effect(node.get("styles"))
        if should_capture and node_id not in skipped:
            decision = self.engine.evaluate(node, ancestors, self.content_size)
            if decision.decouple_opacity:
                self_effect = has_capture_effect(node.get("styles"), ignore_opacity=True)
            tasks.append(
                self._capture_task(node, decision, len(tasks), self_effect or ancestor_effect, self_rotation, ancestor_rotation)
            )
            skipped.update(decision.background_stack_node_ids)
        elif node_id in skipped:
            logger.debug("plan_skip_overlay node=%s", node_id)

        next_ancestors = ancestors + [node]
        for child in node.get("children") or []:
            self._traverse(
                child,
                next_ancestors,
                tasks,
                skipped,
                ancestor_effect or self_effect,
                ancestor_rotation or self_rotation,
            )

    def _capture_task(
        self,
        node: dict[str, Any],
        decision,
        serial: int,
        needs_context: bool,
        self_rotation: bool,
        ancestor_rotation: bool,
    ) -> dict[str, Any]:
        node_id = decision.node_id
        visual = node.get("visual") or {}
        tag = str(node.get("tagName") or "node")
        hide_children = node.get("type") == "Container" and tag.upper() != "IMG"
        hide_own_text = not hide_children and has_direct_text(node)

        reasons = ["capture-image" if node.get("type") == "Image" else "container-visual"]
        if hide_children:
            reasons.append("hide-children")
        if hide_own_text:
            reasons.append("hide-own-direct-text")

        mode = "clone"
        if decision.mode:
            mode = decision.mode
        elif needs_context and not hide_children:
            if visual.get("isIconGlyph"):
                reasons.append("icon-glyph-context-exception")
            else:
                mode = "inPlace"
                reasons.append("context-effect")
        reasons.extend(decision.reasons)

        params: dict[str, Any] = {
            "nodeId": node_id,
            "hideChildren": hide_children,
            "hideOwnText": hide_own_text,
            "mode": mode,
            "neutralizeTransforms": mode == "inPlace" and (self_rotation or ancestor_rotation),
        }
        if params["neutralizeTransforms"] and ancestor_rotation:
            params["ancestorRotationContext"] = True
            reasons.append("ancestor-rotation-context")
        params.update(decision.to_params())
        params["reasons"] = reasons

        self.trace.record_node(
            NodeTrace(
                node_id=node_id,
                mode=mode,
                tokens=list(decision.tokens),
                preserve_scene_underlay=decision.preserve_scene_underlay,
                suppress_underlay_faint_border=decision.suppress_underlay_faint_border,
                decouple_opacity=decision.decouple_opacity,
            )
        )
        output_name = f"{serial:04d}_{tag.lower()}"
        node.setdefault("meta", {})["imagePath"] = f"images/{output_name}.png"
        return {
            "id": f"task-{node_id}",
            "nodeId": node_id,
            "type": "CAPTURE_NODE",
            "outputName": output_name,
            "params": params,
        }

    def write_plan(self, debug_dir: str | Path) -> tuple[Path, Path]:
        target = Path(debug_dir)
        target.mkdir(parents=True, exist_ok=True)
        plan_path = target / PLAN_FILE
        trace_path = target / TRACE_FILE
        plan_path.write_text(json.dumps(self.tasks, indent=2, ensure_ascii=False), encoding="utf-8")
        trace_path.write_text(json.dumps(self.trace.to_list(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("plan_written plan=%s trace=%s", plan_path, trace_path)
        return plan_path, trace_path


__all__ = ["PLAN_FILE", "TRACE_FILE", "Planner", "has_capture_effect", "has_direct_text", "has_rotation"]
