from __future__ import annotations

import logging
from pathlib import Path

from ...errors import BakeError
from ...page import PageHandle
from ...render_session import ExecutionContext
from ..geometry import Clip
from ..models import RepairRequest, Variant
from ..pixels import LumaAnalysis, analyze_pixels, describe_auto
from ..scripts import APPLY_FILTER, FOCUS_SELECTOR, RESTORE_FILTER
from .base import CaptureStrategy, StrategyContext

logger = logging.getLogger("ui_baker.repair.strategies")

GAMMA_FILTER = "contrast(1.2) brightness(0.85) saturate(1.1)"
VIVID_FILTER = "contrast(1.1) saturate(1.4) brightness(0.9)"


def resolve_manual_filter(request: RepairRequest) -> str:
    """``colorFilter`` wins over ``cssFilter``; blank strings do not count."""
    for key in ("colorFilter", "cssFilter"):
        value = request.manual_params.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


class ColorCorrectionStrategy(CaptureStrategy):
    id = "color_correction"
    display_name = "Color Correction"
    key = "COLOR_CORRECTION"
    style_id = "repair-color-style"

    def run(self, request: RepairRequest, context: StrategyContext) -> list[Variant]:
        node_id = request.target_node_id
        hints = context.capture_hints
        out_auto = context.assets.allocate(node_id, "colorauto")
        out_gamma = context.assets.allocate(node_id, "colorgamma")
        out_vivid = context.assets.allocate(node_id, "colorvivid")
        manual = resolve_manual_filter(request)

        def operation(ctx: ExecutionContext) -> tuple[LumaAnalysis, str]:
            with self.isolation(ctx.page) as page:
                geometry = self.setup_in_place(page, request, hints, self.style_id)
                clip = self.clip_for(node_id, geometry.get("rect"))
                analysis = analyze_pixels(self.capture(page, clip))
                auto_filter = manual or analysis.filter
                self._capture_with_filter(page, clip, auto_filter, out_auto.absolute_path)
                self._capture_with_filter(page, clip, GAMMA_FILTER, out_gamma.absolute_path)
                self._capture_with_filter(page, clip, VIVID_FILTER, out_vivid.absolute_path)
                return analysis, auto_filter

        analysis, auto_filter = self.execute(request, context, operation)
        logger.info(
            "color_analysis node=%s samples=%s avg=%s filter=%s",
            node_id,
            analysis.sample_count,
            analysis.avg_luma,
            auto_filter,
        )
        return [
            self.create_variant(
                out_auto.relative_path,
                describe_auto(analysis, manual),
                {
                    "strategy": "COLOR_CORRECTION_AUTO",
                    "colorFilter": auto_filter,
                    **analysis.to_metadata(),
                    "manualOverride": bool(manual),
                },
                variant_id="variant_color_auto",
                name="Auto-Levels",
            ),
            self.create_variant(
                out_gamma.relative_path,
                "Gamma correction (fix washed-out look)",
                {"strategy": "COLOR_CORRECTION_GAMMA", "colorFilter": GAMMA_FILTER},
                variant_id="variant_color_gamma",
                name="Gamma Correct",
            ),
            self.create_variant(
                out_vivid.relative_path,
                "Deep vivid mode (enhance glow and saturation)",
                {"strategy": "COLOR_CORRECTION_VIVID", "colorFilter": VIVID_FILTER},
                variant_id="variant_color_vivid",
                name="Deep Vivid",
            ),
        ]

    def _capture_with_filter(self, page: PageHandle, clip: Clip, filter_value: str, path: Path) -> None:
        if not page.call(APPLY_FILTER, FOCUS_SELECTOR, filter_value.strip()):
            raise BakeError(
                strategy=type(self).__name__,
                action="apply filter",
                reason=f"failed to apply filter to {FOCUS_SELECTOR}",
                suggestion="The focused node disappeared between captures",
                details={"filter": filter_value},
            )
        try:
            self.capture(page, clip, path)
        finally:
            page.call(RESTORE_FILTER, FOCUS_SELECTOR)
