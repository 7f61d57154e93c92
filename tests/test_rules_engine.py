from __future__ import annotations

from typing import Any

import pytest

from ui_baker.config import RuleToggles
from ui_baker.rules.engine import BakeRuleEngine, border_metrics, color_alpha, is_atomic
from ui_baker.rules.trace import (
    BACKGROUND_STACK_COMPOSITE,
    LOW_ALPHA_CONTEXT_CAPTURE,
    OPACITY_DECOUPLED,
    PRESERVE_SCENE_UNDERLAY,
    UNDERLAY_FAINT_BORDER_SUPPRESSED,
)

VIEWPORT = (750.0, 1624.0)


def node(node_id: str, type_: str = "Container", *, w: float = 100, h: float = 100, children=None, **styles: Any) -> dict:
    visual = {"hasVisual": True, "isMask": styles.pop("isMask", False), "isIconGlyph": False}
    return {
        "id": node_id,
        "type": type_,
        "tagName": "DIV",
        "rect": {"x": 0, "y": 0, "width": w, "height": h},
        "styles": styles,
        "visual": visual,
        "children": children or [],
    }


PAINTED_ROOT = node("root", w=750, h=1624, backgroundColor="rgb(10, 10, 10)")


def _glass(**extra: Any) -> dict:
    styles = {"backgroundColor": "rgba(255, 255, 255, 0.2)", "opacity": "1", "backgroundImage": "none"}
    styles.update(extra)
    return node("glass", w=400, h=300, **styles)


def test_color_and_border_parsing() -> None:
    assert color_alpha("rgba(0, 0, 0, 0.25)") == 0.25
    assert color_alpha("rgb(255 255 255 / 0.2)") == 0.2
    assert color_alpha("rgb(1, 2, 3)") == 1.0
    assert color_alpha("transparent") == 0.0
    assert color_alpha(None) == 0.0
    assert border_metrics({"border": "1px solid rgba(255, 255, 255, 0.1)"}) == (1.0, 0.1)
    assert border_metrics({"border": "0px none rgb(0, 0, 0)"}) == (0.0, 0.0)


def test_atomic_means_image_or_leaf_container() -> None:
    assert is_atomic(node("i", "Image"))
    assert is_atomic(node("c", children=[node("t", "Text")]))
    assert not is_atomic(node("c", children=[node("inner")]))
    assert not is_atomic(node("t", "Text"))


def test_opacity_decoupled_fires_for_atomic_nodes() -> None:
    engine = BakeRuleEngine(RuleToggles())
    decision = engine.evaluate(node("img", "Image", opacity="0.5"), [PAINTED_ROOT], VIEWPORT)
    assert decision.decouple_opacity is True
    assert decision.render_opacity == 0.5
    assert decision.to_params() == {"decoupleOpacity": True, "renderOpacity": 0.5}
    assert [t.rule for t in engine.trace.tokens] == [OPACITY_DECOUPLED]

    nested = node("wrap", opacity="0.5", children=[node("inner")])
    assert engine.evaluate(nested, [PAINTED_ROOT], VIEWPORT).decouple_opacity is False
    assert engine.evaluate(node("solid", "Image", opacity="1"), [], VIEWPORT).decouple_opacity is False


def test_opacity_toggle_restores_baked_opacity(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BAKE_DISABLE_OPACITY_DECOUPLED", "1")
    engine = BakeRuleEngine()
    decision = engine.evaluate(node("img", "Image", opacity="0.5"), [], VIEWPORT)
    assert decision.decouple_opacity is False
    assert engine.trace.tokens == []


def test_low_alpha_container_keeps_scene_underlay() -> None:
    engine = BakeRuleEngine(RuleToggles())
    decision = engine.evaluate(_glass(), [PAINTED_ROOT], VIEWPORT)
    assert decision.mode == "inPlace"
    assert decision.preserve_scene_underlay is True
    assert LOW_ALPHA_CONTEXT_CAPTURE in decision.reasons
    assert PRESERVE_SCENE_UNDERLAY in decision.reasons
    assert engine.trace.fired(LOW_ALPHA_CONTEXT_CAPTURE)[0].node_id == "glass"


@pytest.mark.parametrize(
    "glass, ancestors",
    [
        (_glass(), [node("plain", backgroundColor="rgba(0, 0, 0, 0)")]),
        (node("tiny", w=100, h=100, backgroundColor="rgba(255, 255, 255, 0.2)"), [PAINTED_ROOT]),
        (_glass(backgroundImage="url(a.png)"), [PAINTED_ROOT]),
        (_glass(opacity="0.8"), [PAINTED_ROOT]),
        (_glass(isMask=True), [PAINTED_ROOT]),
        (_glass(backgroundColor="rgba(255, 255, 255, 0.6)"), [PAINTED_ROOT]),
    ],
)
def test_low_alpha_guards(glass: dict, ancestors: list) -> None:
    decision = BakeRuleEngine(RuleToggles()).evaluate(glass, ancestors, VIEWPORT)
    assert decision.mode is None
    assert decision.preserve_scene_underlay is False


def test_low_alpha_toggle_falls_back_to_clone(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BAKE_DISABLE_LOW_ALPHA_CONTEXT_CAPTURE", "1")
    decision = BakeRuleEngine().evaluate(_glass(), [PAINTED_ROOT], VIEWPORT)
    assert decision.mode is None
    assert decision.reasons == []


def test_faint_border_suppressed_only_under_underlay() -> None:
    engine = BakeRuleEngine(RuleToggles())
    decision = engine.evaluate(_glass(border="1px solid rgba(255, 255, 255, 0.1)"), [PAINTED_ROOT], VIEWPORT)
    assert decision.suppress_underlay_faint_border is True
    assert UNDERLAY_FAINT_BORDER_SUPPRESSED in decision.reasons
    assert decision.to_params()["suppressUnderlayFaintBorder"] is True

    strong = engine.evaluate(_glass(border="1px solid rgba(255, 255, 255, 0.5)"), [PAINTED_ROOT], VIEWPORT)
    assert strong.suppress_underlay_faint_border is False

    opaque = node("card", w=400, h=300, backgroundColor="rgb(255, 255, 255)", border="1px solid rgba(0, 0, 0, 0.1)")
    assert engine.evaluate(opaque, [PAINTED_ROOT], VIEWPORT).suppress_underlay_faint_border is False

    no_toggle = BakeRuleEngine(RuleToggles(underlay_faint_border=False))
    decision = no_toggle.evaluate(_glass(border="1px solid rgba(255, 255, 255, 0.1)"), [PAINTED_ROOT], VIEWPORT)
    assert decision.preserve_scene_underlay is True
    assert decision.suppress_underlay_faint_border is False


def _scene() -> tuple[dict, dict, dict]:
    bg = node("bg", "Image", w=750, h=1624)
    overlay = node("shade", w=740, h=1600, backgroundColor="rgba(0, 0, 0, 0.4)")
    button = node("btn", w=200, h=60, backgroundColor="rgb(0, 128, 255)")
    root = node("root", w=750, h=1624, children=[bg, overlay, button])
    return root, bg, overlay


def test_background_stack_collects_later_fullscreen_siblings() -> None:
    root, bg, _ = _scene()
    engine = BakeRuleEngine(RuleToggles())
    decision = engine.evaluate(bg, [root], VIEWPORT)
    assert decision.mode == "backgroundStack"
    assert decision.background_stack_node_ids == ["shade"]
    assert decision.reasons == [BACKGROUND_STACK_COMPOSITE]
    assert decision.to_params() == {"backgroundStackNodeIds": ["shade"]}


def test_background_stack_guards_and_toggle(monkeypatch: pytest.MonkeyPatch) -> None:
    root, bg, _ = _scene()
    deep = [node("a"), node("b"), root]
    assert BakeRuleEngine(RuleToggles()).evaluate(bg, deep, VIEWPORT).mode is None

    lonely_root = node("root", w=750, h=1624, children=[bg])
    assert BakeRuleEngine(RuleToggles()).evaluate(bg, [lonely_root], VIEWPORT).mode is None

    monkeypatch.setenv("BAKE_DISABLE_BACKGROUND_STACK_COMPOSITE", "1")
    assert BakeRuleEngine().evaluate(bg, [root], VIEWPORT).mode is None
