"""RepairService: resolve a repair request into concrete captures.

Node context comes from the analysis tree (``analysis_tree.json``) and the
bake plan (``bake_plan.json``) found next to it or in the conventional
output locations. Capture hints follow manual params first, then the plan
task, then node-type heuristics.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from pathlib import Path
from typing import Any

from ..config import ResolutionConfig, build_resolution_config, to_positive_float
from ..errors import NotFoundError
from ..render_session import ExecutionContext, RenderSession
from .assets import AssetAllocator
from .models import SMART_GENERATE, CaptureHints, RepairRequest, RepairResult, parse_optional_bool, to_bool
from .scripts import ENSURE_NODE_MARKER
from .strategies import (
    BackgroundStackStrategy,
    CaptureStrategy,
    ColorCorrectionStrategy,
    CloneStrategy,
    ExpandPaddingStrategy,
    InPlaceStrategy,
    SmartGenerateStrategy,
    StrategyContext,
)

logger = logging.getLogger("ui_baker.repair.service")

_UNSAFE_NAME = re.compile(r'[<>:"/\\|?*\x00-\x1F]+')


def sanitize_name(value: object) -> str:
    normalized = str(value or "").strip()
    if not normalized:
        return "HtmlBaked"
    return _UNSAFE_NAME.sub("_", normalized)


def find_node_by_id(node: Any, node_id: str, ancestors: list[str] | None = None) -> tuple[dict, list[str]] | None:
    """Depth-first search; returns the node and its ancestor id chain."""
    if not isinstance(node, dict):
        return None
    chain = ancestors or []
    if str(node.get("id") or "") == str(node_id):
        return node, chain
    next_chain = chain + ([str(node["id"])] if node.get("id") else [])
    for child in node.get("children") or []:
        found = find_node_by_id(child, node_id, next_chain)
        if found:
            return found
    return None


def find_capture_task(plan: Any, node_id: str) -> dict | None:
    for task in plan if isinstance(plan, list) else []:
        if not isinstance(task, dict) or task.get("type") != "CAPTURE_NODE":
            continue
        params = task.get("params") if isinstance(task.get("params"), dict) else {}
        if str(params.get("nodeId") or task.get("nodeId") or "") == str(node_id or ""):
            return task
    return None


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


@dataclasses.dataclass
class NodeContext:
    analysis_tree_path: str = ""
    matched_analysis_tree_path: str = ""
    matched_html_name: str = ""
    node: dict | None = None
    dom_path: str = ""
    ancestor_chain: list[str] = dataclasses.field(default_factory=list)
    capture_task_params: dict | None = None
    aligned_html_path: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysisTreePath": self.analysis_tree_path,
            "matchedAnalysisTreePath": self.matched_analysis_tree_path,
            "matchedHtmlName": self.matched_html_name,
            "node": self.node,
            "domPath": self.dom_path,
            "ancestorChain": list(self.ancestor_chain),
            "captureTaskParams": self.capture_task_params,
            "alignedHtmlPath": self.aligned_html_path,
        }


class RepairService:
    def __init__(
        self,
        render_session: RenderSession | None = None,
        assets: AssetAllocator | None = None,
        *,
        clone: CaptureStrategy | None = None,
        in_place: CaptureStrategy | None = None,
        expand_padding: CaptureStrategy | None = None,
        color_correction: CaptureStrategy | None = None,
        smart_generate: CaptureStrategy | None = None,
    ) -> None:
        self.render_session = render_session or RenderSession.get_instance()
        self.assets = assets or AssetAllocator()

        self.clone = clone or CloneStrategy()
        self.in_place = in_place or InPlaceStrategy()
        self.expand_padding = expand_padding or ExpandPaddingStrategy()
        self.color_correction = color_correction or ColorCorrectionStrategy()
        self.background_stack = BackgroundStackStrategy()
        self.smart_generate = smart_generate or SmartGenerateStrategy(
            [self.clone, self.expand_padding, self.in_place, self.color_correction]
        )
        self._manual = {
            "FORCE_CLONE": self.clone,
            "FORCE_IN_PLACE": self.in_place,
            "EXPAND_PADDING": self.expand_padding,
            "COLOR_CORRECTION": self.color_correction,
            "BACKGROUND_STACK": self.background_stack,
            "SMART_GENERATE": self.smart_generate,
        }

    @property
    def workspace_root(self) -> Path:
        return self.assets.workspace_root

    def run(self, payload: dict[str, Any]) -> dict[str, Any]:
        request = RepairRequest.from_input(payload)
        node_context = self.resolve_node_context(request)
        request = self.align_html_path(request, node_context)
        resolution = self.resolve_resolution(request, node_context)
        hints = self.resolve_capture_hints(request, node_context)

        self.ensure_node_marker(request, node_context, resolution)

        context = StrategyContext(
            render_session=self.render_session,
            assets=self.assets,
            capture_hints=hints,
            viewport=resolution.viewport,
            node_context=node_context.to_dict(),
            dry_run=request.dry_run,
        )
        strategy = self.smart_generate if request.mode == SMART_GENERATE else self.select_manual(request)
        logger.info("repair_start node=%s mode=%s strategy=%s", request.target_node_id, request.mode, strategy.key)
        outcome = strategy.run(request, context)
        variants = outcome if isinstance(outcome, list) else [outcome]
        return RepairResult(node_id=request.target_node_id, variants=variants).to_dict()

    def close(self) -> None:
        self.render_session.close()

    def select_manual(self, request: RepairRequest) -> CaptureStrategy:
        key = str(request.manual_params.get("strategy") or "FORCE_CLONE").strip().upper()
        return self._manual.get(key, self.clone)

    # ─────────────────────────────────────────────────────────────────────────
    # Node context
    # ─────────────────────────────────────────────────────────────────────────

    def _html_name(self, request: RepairRequest) -> str:
        return sanitize_name(Path(request.html_path).stem)

    def _debug_candidates(self, request: RepairRequest, file_name: str) -> list[Path]:
        root = self.workspace_root
        return [
            root / "Temp" / "HtmlToPrefab" / self._html_name(request) / "output" / "debug" / file_name,
            root / "tool" / "UIBaker" / "output" / "debug" / file_name,
            root / "output" / "debug" / file_name,
            Path.cwd() / "output" / "debug" / file_name,
        ]

    def resolve_analysis_tree_path(self, request: RepairRequest) -> Path | None:
        manual = request.manual_params.get("analysisTreePath")
        if manual:
            path = Path(str(manual)).expanduser().resolve()
            if path.is_file():
                return path
        return next((p for p in self._debug_candidates(request, "analysis_tree.json") if p.is_file()), None)

    def resolve_bake_plan_path(self, request: RepairRequest, analysis_tree_path: str) -> Path | None:
        manual = request.manual_params.get("bakePlanPath")
        if manual:
            path = Path(str(manual)).expanduser().resolve()
            if path.is_file():
                return path
        candidates = self._debug_candidates(request, "bake_plan.json")
        if analysis_tree_path:
            candidates.insert(0, Path(analysis_tree_path).parent / "bake_plan.json")
        return next((p for p in candidates if p.is_file()), None)

    def resolve_node_context(self, request: RepairRequest) -> NodeContext:
        node_id = request.target_node_id
        tree_path = self.resolve_analysis_tree_path(request)
        ctx = NodeContext(analysis_tree_path=str(tree_path or ""))

        if tree_path is not None:
            try:
                found = find_node_by_id(_read_json(tree_path), node_id)
            except (OSError, ValueError) as exc:
                logger.warning("analysis_tree_unreadable path=%s error=%s", tree_path, exc)
                found = None
            if found:
                ctx.node, ctx.ancestor_chain = found
                ctx.matched_analysis_tree_path = str(tree_path)
                ctx.matched_html_name = self._html_name_from_analysis_path(str(tree_path))

        if ctx.node is None:
            fallback = self._find_in_any_analysis_tree(node_id, tree_path)
            if fallback is not None:
                path, html_name, node, chain = fallback
                ctx.analysis_tree_path = ctx.matched_analysis_tree_path = str(path)
                ctx.matched_html_name = html_name
                ctx.node, ctx.ancestor_chain = node, chain

        if ctx.node is not None:
            ctx.dom_path = str(ctx.node.get("domPath") or "")

        plan_path = self.resolve_bake_plan_path(request, ctx.analysis_tree_path)
        if plan_path is not None:
            try:
                task = find_capture_task(_read_json(plan_path), node_id)
            except (OSError, ValueError) as exc:
                logger.warning("bake_plan_unreadable path=%s error=%s", plan_path, exc)
                task = None
            if task and isinstance(task.get("params"), dict):
                ctx.capture_task_params = task["params"]
        return ctx

    def _find_in_any_analysis_tree(
        self, node_id: str, exclude: Path | None
    ) -> tuple[Path, str, dict, list[str]] | None:
        temp_root = self.workspace_root / "Temp" / "HtmlToPrefab"
        if not temp_root.is_dir():
            return None
        excluded = exclude.resolve() if exclude else None
        for entry in sorted(temp_root.iterdir()):
            if not entry.is_dir() or entry.name.lower() == "repair":
                continue
            candidate = entry / "output" / "debug" / "analysis_tree.json"
            if not candidate.is_file() or candidate.resolve() == excluded:
                continue
            try:
                raw = candidate.read_text(encoding="utf-8")
                if node_id not in raw:
                    continue
                found = find_node_by_id(json.loads(raw), node_id)
            except (OSError, ValueError) as exc:
                logger.warning("analysis_tree_unreadable path=%s error=%s", candidate, exc)
                continue
            if found:
                return candidate, entry.name, found[0], found[1]
        return None

    @staticmethod
    def _html_name_from_analysis_path(path: str) -> str:
        normalized = path.replace("\\", "/")
        marker = "/Temp/HtmlToPrefab/"
        index = normalized.find(marker)
        if index < 0:
            return ""
        return normalized[index + len(marker) :].split("/")[0]

    def align_html_path(self, request: RepairRequest, ctx: NodeContext) -> RepairRequest:
        """Point the request at the document the node was actually found in."""
        matched = ctx.matched_html_name.strip()
        if not matched or Path(request.html_path).stem == matched:
            return request
        root = self.workspace_root
        for candidate in (
            root / f"{matched}.html",
            root / f"{matched}.htm",
            root / "test" / f"{matched}.html",
            root / "test" / f"{matched}.htm",
            root / "tool" / "UIBaker" / "test" / f"{matched}.html",
            root / "tool" / "UIBaker" / "test" / f"{matched}.htm",
        ):
            if candidate.is_file():
                ctx.aligned_html_path = str(candidate.resolve())
                logger.info("repair_html_aligned from=%s to=%s", request.html_path, ctx.aligned_html_path)
                return dataclasses.replace(request, html_path=ctx.aligned_html_path)
        return request

    # ─────────────────────────────────────────────────────────────────────────
    # Resolution & hints
    # ─────────────────────────────────────────────────────────────────────────

    def resolve_resolution(self, request: RepairRequest, ctx: NodeContext) -> ResolutionConfig:  # noqa: ARG002
        manual = request.manual_params
        return build_resolution_config(
            width=manual.get("width") or manual.get("targetWidth"),
            height=manual.get("height") or manual.get("targetHeight"),
            base_width=manual.get("baseWidth"),
            dpr=manual.get("dpr"),
        )

    def resolve_source_node_id(self, request: RepairRequest, ctx: NodeContext) -> str:
        params = ctx.capture_task_params or {}
        if params.get("captureSourceNodeId"):
            return str(params["captureSourceNodeId"])
        return request.target_node_id

    def resolve_capture_hints(self, request: RepairRequest, ctx: NodeContext) -> CaptureHints:
        manual = request.manual_params
        params = ctx.capture_task_params or {}
        node = ctx.node or {}
        node_type = str(manual.get("nodeType") or node.get("type") or "").strip()

        hide_children = parse_optional_bool(manual.get("hideChildren"))
        if hide_children is None:
            hide_children = params["hideChildren"] if isinstance(params.get("hideChildren"), bool) else (
                node_type.lower() != "text"
            )
        hide_own_text = parse_optional_bool(manual.get("hideOwnText"))
        if hide_own_text is None:
            hide_own_text = params["hideOwnText"] if isinstance(params.get("hideOwnText"), bool) else True

        return CaptureHints(
            source_node_id=self.resolve_source_node_id(request, ctx),
            hide_children=hide_children,
            hide_own_text=hide_own_text,
            strip_text=to_bool(manual.get("stripText"), True),
            isolate_node=to_bool(manual.get("isolateNode"), True),
            node_type=node_type,
            mode=str(params.get("mode") or "").strip(),
            decouple_opacity=bool(params.get("decoupleOpacity")),
            render_opacity=to_positive_float(params.get("renderOpacity"), 1.0),
            preserve_scene_underlay=bool(params.get("preserveSceneUnderlay")),
            suppress_faint_border=bool(params.get("suppressUnderlayFaintBorder")),
            background_stack_node_ids=tuple(str(i) for i in params.get("backgroundStackNodeIds") or ()),
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Node marker
    # ─────────────────────────────────────────────────────────────────────────

    def ensure_node_marker(self, request: RepairRequest, ctx: NodeContext, resolution: ResolutionConfig) -> None:
        """Make sure the target carries ``data-bake-id``, assigning it through ``domPath`` if needed."""
        manual_dom_path = str(request.manual_params.get("domPath") or "")
        dom_path = ctx.dom_path or manual_dom_path
        source_id = self.resolve_source_node_id(request, ctx)

        def operation(exec_ctx: ExecutionContext) -> bool:
            return bool(exec_ctx.page.call(ENSURE_NODE_MARKER, source_id, dom_path))

        found = self.render_session.execute(request.html_path, operation, viewport=resolution.viewport)
        if found:
            return

        hints: list[str] = []
        html_name = Path(request.html_path).stem
        if ctx.matched_html_name and ctx.matched_html_name != html_name:
            hints.append(
                f"Hint: node appears in analysis tree for '{ctx.matched_html_name}', but current html is '{html_name}'."
            )
        if ctx.dom_path:
            hints.append(f"domPath='{ctx.dom_path}'.")
        elif manual_dom_path:
            hints.append(f"manual domPath='{manual_dom_path}'.")
        if ctx.matched_analysis_tree_path:
            hints.append(f"analysis='{ctx.matched_analysis_tree_path}'.")
        raise NotFoundError(
            strategy="RepairService",
            action="locate node",
            reason=f"unable to locate node '{request.target_node_id}' in current HTML",
            suggestion=" ".join(hints) or "Pass manualParams.domPath to locate the node",
            details={"nodeId": request.target_node_id, "domPath": dom_path},
        )


__all__ = ["NodeContext", "RepairService", "find_capture_task", "find_node_by_id", "sanitize_name"]
