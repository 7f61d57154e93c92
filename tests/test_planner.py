from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from ui_baker.config import RuleToggles, build_resolution_config
from ui_baker.rules.engine import BakeRuleEngine
from ui_baker.rules.planner import Planner, has_capture_effect
from ui_baker.rules.validate import validate_rules_trace


def n(node_id: str, type_: str, tag: str, w: float, h: float, *, visual: bool = True, children=None, rotation=0, glyph=False, **styles: Any) -> dict:
    return {
        "id": node_id,
        "type": type_,
        "tagName": tag,
        "rect": {"x": 0, "y": 0, "width": w, "height": h},
        "styles": styles,
        "visual": {"hasVisual": visual, "isMask": False, "isIconGlyph": glyph},
        "rotation": rotation,
        "children": children or [],
    }


def scene() -> dict:
    return n(
        "root",
        "Container",
        "BODY",
        750,
        1624,
        backgroundColor="rgb(12, 12, 20)",
        children=[
            n("bg", "Image", "IMG", 750, 1624),
            n("shade", "Container", "DIV", 750, 1624, backgroundColor="rgba(0, 0, 0, 0.4)"),
            n(
                "card",
                "Container",
                "DIV",
                600,
                400,
                backgroundColor="rgba(255, 255, 255, 0.18)",
                border="1px solid rgba(255, 255, 255, 0.08)",
            ),
            n(
                "clip",
                "Container",
                "DIV",
                200,
                200,
                visual=False,
                rotation=12,
                overflow="hidden",
                children=[n("icon", "Image", "IMG", 48, 48), n("glyph", "Image", "I", 24, 24, glyph=True)],
            ),
            n("banner", "Image", "DIV", 300, 80, children=[n("banner-text", "Text", "#TEXT", 100, 20)]),
            n("faded", "Image", "IMG", 64, 64, opacity="0.5"),
            n("label", "Text", "SPAN", 100, 20),
        ],
    )


def _by_node(tasks: list[dict]) -> dict[str, dict]:
    return {t["nodeId"]: t for t in tasks if t["type"] == "CAPTURE_NODE"}


def test_plan_starts_with_page_capture() -> None:
    tasks = Planner(build_resolution_config(750, 1624, 375)).plan(scene())
    page = tasks[0]
    assert page["id"] == "task-global-bg"
    assert page["type"] == "CAPTURE_PAGE"
    assert page["params"]["width"] == 750 and page["params"]["height"] == 1624
    assert page["params"]["logicalWidth"] == 375 and page["params"]["logicalHeight"] == 812


def test_plan_assigns_modes_and_reasons() -> None:
    tasks = Planner(engine=BakeRuleEngine(RuleToggles())).plan(scene())
    by_node = _by_node(tasks)

    assert set(by_node) == {"root", "bg", "card", "icon", "glyph", "banner", "faded"}
    assert all(t["params"]["reasons"] for t in tasks)

    root = by_node["root"]
    assert root["id"] == "task-root"
    assert root["outputName"] == "0001_body"
    assert root["params"]["hideChildren"] is True
    assert root["params"]["mode"] == "clone"

    bg = by_node["bg"]["params"]
    assert bg["mode"] == "backgroundStack"
    assert bg["backgroundStackNodeIds"] == ["shade"]
    assert bg["hideChildren"] is False

    card = by_node["card"]["params"]
    assert card["mode"] == "inPlace"
    assert card["preserveSceneUnderlay"] is True
    assert card["suppressUnderlayFaintBorder"] is True
    assert "preserve-scene-underlay" in card["reasons"]

    icon = by_node["icon"]["params"]
    assert icon["mode"] == "inPlace"
    assert "context-effect" in icon["reasons"]
    assert icon["neutralizeTransforms"] is True
    assert icon["ancestorRotationContext"] is True

    glyph = by_node["glyph"]["params"]
    assert glyph["mode"] == "clone"
    assert "icon-glyph-context-exception" in glyph["reasons"]

    banner = by_node["banner"]["params"]
    assert banner["hideOwnText"] is True
    assert "hide-own-direct-text" in banner["reasons"]

    faded = by_node["faded"]["params"]
    assert faded["mode"] == "clone"
    assert faded["decoupleOpacity"] is True
    assert faded["renderOpacity"] == 0.5


def test_output_names_follow_task_order() -> None:
    tasks = Planner(engine=BakeRuleEngine(RuleToggles())).plan(scene())
    names = [t["outputName"] for t in tasks]
    assert names[0] == "bg"
    assert names[1:] == [f"{i:04d}_{t['outputName'].split('_', 1)[1]}" for i, t in enumerate(tasks[1:], start=1)]


def test_disabled_rules_restore_fallback_paths(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BAKE_DISABLE_BACKGROUND_STACK_COMPOSITE",
        "BAKE_DISABLE_LOW_ALPHA_CONTEXT_CAPTURE",
        "BAKE_DISABLE_OPACITY_DECOUPLED",
    ):
        monkeypatch.setenv(name, "1")
    by_node = _by_node(Planner().plan(scene()))

    assert "shade" in by_node
    assert by_node["bg"]["params"]["mode"] == "clone"
    assert by_node["card"]["params"]["mode"] == "clone"
    assert "preserveSceneUnderlay" not in by_node["card"]["params"]
    # Opacity goes back to being a context effect baked into pixels.
    assert by_node["faded"]["params"]["mode"] == "inPlace"
    assert "decoupleOpacity" not in by_node["faded"]["params"]


def test_write_plan_round_trips_through_validator(tmp_path: Path) -> None:
    planner = Planner(engine=BakeRuleEngine(RuleToggles()))
    planner.plan(scene())
    plan_path, trace_path = planner.write_plan(tmp_path / "debug")

    plan = json.loads(plan_path.read_text(encoding="utf-8"))
    trace = json.loads(trace_path.read_text(encoding="utf-8"))
    assert len(plan) == 8
    assert {t["nodeId"] for t in trace} == {"root", "bg", "card", "icon", "glyph", "banner", "faded"}
    card_trace = next(t for t in trace if t["nodeId"] == "card")
    assert [r["rule"] for r in card_trace["rules"]] == ["low-alpha-context-capture", "underlay-faint-border-suppressed"]
    assert validate_rules_trace(tmp_path / "debug") == ([], [])


def test_capture_effects() -> None:
    assert not has_capture_effect({"overflow": "visible", "filter": "none", "mixBlendMode": "normal"})
    assert has_capture_effect({"overflowY": "auto"})
    assert has_capture_effect({"clipPath": "circle(50%)"})
    assert has_capture_effect({"mixBlendMode": "screen"})
    assert has_capture_effect({"opacity": "0.4"})
    assert not has_capture_effect({"opacity": "0.4"}, ignore_opacity=True)
    assert not has_capture_effect(None)
