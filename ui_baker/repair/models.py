"""Repair domain records: request, capture hints, variants and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

SMART_GENERATE = "SMART_GENERATE"
MANUAL = "MANUAL"
REPAIR_MODES = (SMART_GENERATE, MANUAL)


def parse_optional_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized == "true":
            return True
        if normalized == "false":
            return False
    return None


def to_bool(value: Any, fallback: bool) -> bool:
    parsed = parse_optional_bool(value)
    return fallback if parsed is None else parsed


@dataclass(frozen=True)
class RepairRequest:
    target_node_id: str
    html_path: str
    mode: str = SMART_GENERATE
    manual_params: dict[str, Any] = field(default_factory=dict)
    dry_run: bool = True

    @classmethod
    def from_input(cls, payload: dict[str, Any] | None) -> RepairRequest:
        """Build from the camelCase manifest shape. Raises ValueError on bad input."""
        data = payload if isinstance(payload, dict) else {}
        node_id = str(data.get("targetNodeId") or "").strip()
        html_path = str(data.get("htmlPath") or "").strip()
        mode = str(data.get("mode") or SMART_GENERATE).strip().upper()

        manual_raw = data.get("manualParams")
        manual = dict(manual_raw) if isinstance(manual_raw, dict) else {}
        if data.get("strategy") and not manual.get("strategy"):
            manual["strategy"] = str(data["strategy"]).strip()

        dry_run = data.get("dryRun")
        if not isinstance(dry_run, bool):
            dry_run = mode == SMART_GENERATE

        if not node_id:
            raise ValueError("RepairRequest.targetNodeId is required.")
        if not html_path:
            raise ValueError("RepairRequest.htmlPath is required.")
        if mode not in REPAIR_MODES:
            raise ValueError(f"RepairRequest.mode must be one of {', '.join(REPAIR_MODES)}.")

        return cls(
            target_node_id=node_id,
            html_path=str(Path(html_path).expanduser().resolve()),
            mode=mode,
            manual_params=manual,
            dry_run=dry_run,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetNodeId": self.target_node_id,
            "htmlPath": self.html_path,
            "mode": self.mode,
            "manualParams": dict(self.manual_params),
            "dryRun": self.dry_run,
        }


@dataclass(frozen=True)
class CaptureHints:
    """How a strategy isolates its target. Every flag is on unless explicitly off."""

    source_node_id: str = ""
    hide_children: bool = True
    hide_own_text: bool = True
    strip_text: bool = True
    isolate_node: bool = True
    node_type: str = ""
    mode: str = ""
    # Bake-only flags decided by the rule engine.
    decouple_opacity: bool = False
    render_opacity: float = 1.0
    preserve_scene_underlay: bool = False
    suppress_faint_border: bool = False
    background_stack_node_ids: tuple[str, ...] = ()
    neutralize_transforms: bool = False

    @classmethod
    def from_task_params(cls, params: dict[str, Any]) -> CaptureHints:
        """Hints for a planned ``CAPTURE_NODE`` task."""
        try:
            render_opacity = float(params.get("renderOpacity", 1.0))
        except (TypeError, ValueError):
            render_opacity = 1.0
        return cls(
            source_node_id=str(params.get("captureSourceNodeId") or params.get("nodeId") or ""),
            hide_children=bool(params.get("hideChildren")),
            hide_own_text=bool(params.get("hideOwnText")),
            strip_text=True,
            isolate_node=True,
            mode=str(params.get("mode") or "clone"),
            decouple_opacity=bool(params.get("decoupleOpacity")),
            render_opacity=render_opacity,
            preserve_scene_underlay=bool(params.get("preserveSceneUnderlay")),
            suppress_faint_border=bool(params.get("suppressUnderlayFaintBorder")),
            background_stack_node_ids=tuple(str(i) for i in params.get("backgroundStackNodeIds") or ()),
            neutralize_transforms=bool(params.get("neutralizeTransforms")),
        )

    def to_bake_options(self) -> dict[str, bool]:
        return {
            "hideChildren": self.hide_children,
            "hideOwnText": self.hide_own_text,
            "decoupleOpacity": self.decouple_opacity,
            "preserveSceneUnderlay": self.preserve_scene_underlay,
            "suppressFaintBorder": self.suppress_faint_border,
            "neutralizeTransforms": self.neutralize_transforms,
        }

    @classmethod
    def resolve(cls, raw: CaptureHints | dict[str, Any] | None) -> CaptureHints:
        if isinstance(raw, CaptureHints):
            return raw
        data = raw if isinstance(raw, dict) else {}
        return cls(
            source_node_id=str(data.get("sourceNodeId") or ""),
            hide_children=data.get("hideChildren") is not False,
            hide_own_text=data.get("hideOwnText") is not False,
            strip_text=data.get("stripText") is not False,
            isolate_node=data.get("isolateNode") is not False,
            node_type=str(data.get("nodeType") or ""),
            mode=str(data.get("mode") or ""),
        )

    def to_script_options(self) -> dict[str, bool]:
        return {
            "hideChildren": self.hide_children,
            "hideOwnText": self.hide_own_text,
            "stripText": self.strip_text,
            "isolateNode": self.isolate_node,
        }


@dataclass(frozen=True)
class Variant:
    id: str
    name: str
    image_path: str
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id or "").strip())
        object.__setattr__(self, "name", str(self.name or "").strip())
        object.__setattr__(self, "image_path", str(self.image_path or "").replace("\\", "/"))
        object.__setattr__(self, "description", str(self.description or "").strip())
        if not self.id:
            raise ValueError("Variant.id is required.")
        if not self.name:
            raise ValueError("Variant.name is required.")
        if not self.image_path:
            raise ValueError("Variant.image_path is required.")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "imagePath": self.image_path,
            "description": self.description,
        }
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out


@dataclass
class RepairResult:
    node_id: str
    variants: list[Variant] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.node_id = str(self.node_id or "").strip()
        if not self.node_id:
            raise ValueError("RepairResult.node_id is required.")
        self.variants = [v for v in self.variants if v is not None]

    def to_dict(self) -> dict[str, Any]:
        return {"nodeId": self.node_id, "variants": [v.to_dict() for v in self.variants]}


__all__ = [
    "MANUAL",
    "REPAIR_MODES",
    "SMART_GENERATE",
    "CaptureHints",
    "RepairRequest",
    "RepairResult",
    "Variant",
    "parse_optional_bool",
    "to_bool",
]
