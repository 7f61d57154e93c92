from __future__ import annotations

from ...render_session import ExecutionContext
from ..geometry import Clip, node_selector, normalize_clip
from ..models import RepairRequest, Variant
from ..scripts import CLONE_SETUP
from .base import CaptureStrategy, StrategyContext


class CloneStrategy(CaptureStrategy):
    """Deep-clone the target into a fixed overlay at the origin and capture it alone."""

    id = "variant_original"
    display_name = "Original (Clone)"
    key = "FORCE_CLONE"
    suffix = "orig"

    def run(self, request: RepairRequest, context: StrategyContext) -> Variant:
        node_id = request.target_node_id
        hints = context.capture_hints
        selector = node_selector(hints.source_node_id or node_id)
        output = context.assets.allocate(node_id, self.suffix)
        options = {**hints.to_script_options(), "decoupleOpacity": hints.decouple_opacity}

        def operation(ctx: ExecutionContext) -> Clip:
            with self.isolation(ctx.page) as page:
                capture = page.call(CLONE_SETUP, selector, options)
                if not isinstance(capture, dict) or not capture.get("clip"):
                    raise self.not_found(node_id, selector)
                clip = normalize_clip(capture["clip"])
                if clip is None:
                    raise self.invalid_clip(node_id, capture["clip"])
                self.capture(page, clip, output.absolute_path)
                return clip

        clip = self.execute(request, context, operation)
        self.log_captured(node_id, output.relative_path)
        return self.create_variant(
            output.relative_path,
            "Original strategy (clone + strip text)",
            {"strategy": self.key, "mode": "clone", "clip": clip.to_dict()},
        )
