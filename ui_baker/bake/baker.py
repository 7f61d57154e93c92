"""Execute a bake plan against one document.

``CAPTURE_PAGE`` takes an opaque screenshot of the whole content area;
``CAPTURE_NODE`` dispatches to the clone, in-place or background-stack
capture according to the planned ``mode``. Images land in
``<output_dir>/images/<outputName>.png``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from ..config import ResolutionConfig, build_resolution_config
from ..errors import BakeError
from ..http_client import HttpClientError
from ..render_session import ExecutionContext, RenderSession
from ..repair.assets import AssetPath
from ..repair.geometry import node_selector
from ..repair.models import MANUAL, CaptureHints, RepairRequest, Variant
from ..repair.scripts import BAKE_IN_PLACE_SETUP
from ..repair.strategies import BackgroundStackStrategy, CaptureStrategy, CloneStrategy, InPlaceStrategy, StrategyContext

logger = logging.getLogger("ui_baker.bake.baker")

IMAGES_DIR = "images"


class TaskOutput:
    """Allocator that hands out the planned file name for a single task."""

    def __init__(self, output_dir: str | Path, output_name: str) -> None:
        self.output_dir = Path(output_dir)
        self.output_name = output_name

    def allocate(self, node_id: str, suffix: str, ext: str = ".png") -> AssetPath:  # noqa: ARG002
        path = self.output_dir / IMAGES_DIR / f"{self.output_name}{ext}"
        path.parent.mkdir(parents=True, exist_ok=True)
        relative = os.path.relpath(path, self.output_dir).replace("\\", "/")
        return AssetPath(absolute_path=path, relative_path=relative)


class BakeInPlaceStrategy(InPlaceStrategy):
    """In-place capture driven by the planner's flags instead of repair hints."""

    id = "bake_inplace"
    display_name = "Bake In-Place"
    key = "BAKE_IN_PLACE"
    style_id = "bake-isolation-style"
    description = "Planned in-place capture"

    def extra_padding(self, request: RepairRequest) -> float:  # noqa: ARG002
        return 0.0

    def setup_in_place(self, page, request, hints, style_id):  # noqa: ARG002
        selector = node_selector(hints.source_node_id or request.target_node_id)
        geometry = page.call(BAKE_IN_PLACE_SETUP, selector, hints.to_bake_options())
        if not isinstance(geometry, dict) or not geometry.get("rect"):
            raise self.not_found(request.target_node_id, selector)
        return geometry


class PlanBaker:
    def __init__(
        self,
        render_session: RenderSession,
        output_dir: str | Path,
        resolution: ResolutionConfig | None = None,
        *,
        clone: CaptureStrategy | None = None,
        in_place: CaptureStrategy | None = None,
        background_stack: CaptureStrategy | None = None,
    ) -> None:
        self.render_session = render_session
        self.output_dir = Path(output_dir)
        self.resolution = resolution or build_resolution_config()
        self._strategies: dict[str, CaptureStrategy] = {
            "clone": clone or CloneStrategy(),
            "inPlace": in_place or BakeInPlaceStrategy(),
            "backgroundStack": background_stack or BackgroundStackStrategy(),
        }

    @property
    def dpr(self) -> float:
        return self.resolution.dpr

    def run(self, html_path: str | Path, tasks: list[dict[str, Any]]) -> dict[str, Any]:
        """Run every task in order; returns ``{"page": ..., "nodeCaptures": {...}, "failures": [...]}``."""
        html = str(Path(html_path).expanduser().resolve())
        page_meta: dict[str, Any] | None = None
        node_captures: dict[str, dict[str, Any]] = {}
        failures: list[dict[str, Any]] = []

        for task in tasks or []:
            if not isinstance(task, dict):
                continue
            if task.get("type") == "CAPTURE_PAGE":
                page_meta = self.capture_page(html, task)
            elif task.get("type") == "CAPTURE_NODE":
                node_id = str(task.get("nodeId") or (task.get("params") or {}).get("nodeId") or "")
                try:
                    node_captures[node_id] = self.capture_node(html, task)
                except (BakeError, HttpClientError) as exc:
                    logger.warning("bake_node_failed node=%s task=%s err=%s", node_id, task.get("outputName"), exc)
                    error = exc.to_dict() if isinstance(exc, BakeError) else {"error": True, "reason": str(exc)}
                    failures.append({"nodeId": node_id, "task": task.get("id"), "error": error})

        logger.info("bake_done captured=%d failed=%d", len(node_captures), len(failures))
        return {"page": page_meta, "nodeCaptures": node_captures, "failures": failures}

    def capture_page(self, html_path: str, task: dict[str, Any]) -> dict[str, Any]:
        params = task.get("params") or {}
        width = int(params.get("logicalWidth") or params.get("width") or self.resolution.logical_width)
        height = int(params.get("logicalHeight") or params.get("height") or self.resolution.logical_height)
        output = TaskOutput(self.output_dir, str(task.get("outputName") or "bg")).allocate("page", "bg")
        clip = {"x": 0, "y": 0, "width": width, "height": height}

        def operation(ctx: ExecutionContext) -> None:
            ctx.page.screenshot(output.absolute_path, clip=clip, omit_background=False, capture_beyond_viewport=True)

        self.render_session.execute(html_path, operation, viewport=self.resolution.viewport)
        logger.info("bake_page_captured path=%s", output.relative_path)
        return {"imagePath": output.relative_path, "width": round(width * self.dpr), "height": round(height * self.dpr)}

    def capture_node(self, html_path: str, task: dict[str, Any]) -> dict[str, Any]:
        params = task.get("params") or {}
        hints = CaptureHints.from_task_params(params)
        strategy = self._strategies.get(hints.mode)
        if strategy is None:
            raise BakeError(
                strategy=type(self).__name__,
                action="dispatch task",
                reason=f"unknown capture mode {hints.mode!r}",
                suggestion="Use clone, inPlace or backgroundStack",
                details={"task": task.get("id")},
            )
        node_id = str(params.get("nodeId") or task.get("nodeId") or "")
        request = RepairRequest(target_node_id=node_id, html_path=html_path, mode=MANUAL, dry_run=False)
        context = StrategyContext(
            render_session=self.render_session,
            assets=TaskOutput(self.output_dir, str(task.get("outputName") or node_id)),
            capture_hints=hints,
            viewport=self.resolution.viewport,
        )
        variant = strategy.run(request, context)
        return self.node_meta(variant, hints)

    def node_meta(self, variant: Variant, hints: CaptureHints) -> dict[str, Any]:
        clip = variant.metadata.get("clip") or {}
        dpr = self.dpr
        meta: dict[str, Any] = {
            "mode": hints.mode,
            "imagePath": variant.image_path,
            "imageWidth": round(clip.get("width", 0) * dpr),
            "imageHeight": round(clip.get("height", 0) * dpr),
        }
        rect = variant.metadata.get("elementRect")
        if hints.mode == "inPlace" and isinstance(rect, dict):
            meta["contentOffsetX"] = round(max(0.0, float(rect.get("x", 0)) - clip.get("x", 0)) * dpr)
            meta["contentOffsetY"] = round(max(0.0, float(rect.get("y", 0)) - clip.get("y", 0)) * dpr)
            meta["contentWidth"] = round(float(rect.get("width", 0)) * dpr)
            meta["contentHeight"] = round(float(rect.get("height", 0)) * dpr)
        if hints.decouple_opacity:
            meta["opacityDecoupled"] = True
            meta["renderOpacity"] = round(max(0.0, min(1.0, hints.render_opacity)), 6)
        return meta


def write_captures(result: dict[str, Any], debug_dir: str | Path) -> Path:
    target = Path(debug_dir)
    target.mkdir(parents=True, exist_ok=True)
    path = target / "bake_captures.json"
    path.write_text(json.dumps(result, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


__all__ = ["IMAGES_DIR", "BakeInPlaceStrategy", "PlanBaker", "TaskOutput", "write_captures"]
