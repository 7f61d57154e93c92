from __future__ import annotations

from ...render_session import ExecutionContext
from ..geometry import Clip, shadow_padding, to_padding
from ..models import RepairRequest, Variant
from .base import CaptureStrategy, StrategyContext


class InPlaceStrategy(CaptureStrategy):
    """Capture the live node where it sits, keeping context cast onto its neighbours.

    The clip grows by the node's own shadow/blur extent plus a manual
    ``contextPadding`` so halo pixels survive.
    """

    id = "variant_inplace"
    display_name = "Force Context"
    key = "FORCE_IN_PLACE"
    suffix = "context"
    style_id = "repair-inplace-style"
    description = "In-place capture with isolated node context"

    def extra_padding(self, request: RepairRequest) -> float:
        return to_padding(request.manual_params.get("contextPadding"))

    def run(self, request: RepairRequest, context: StrategyContext) -> Variant:
        node_id = request.target_node_id
        hints = context.capture_hints
        output = context.assets.allocate(node_id, self.suffix)
        extra = self.extra_padding(request)

        def operation(ctx: ExecutionContext) -> tuple[Clip, float, dict]:
            with self.isolation(ctx.page) as page:
                geometry = self.setup_in_place(page, request, hints, self.style_id)
                padding = shadow_padding(geometry.get("boxShadow"), geometry.get("filter")) + extra
                clip = self.clip_for(node_id, geometry.get("rect"), padding)
                self.capture(page, clip, output.absolute_path)
                return clip, padding, geometry["rect"]

        clip, padding, rect = self.execute(request, context, operation)
        self.log_captured(node_id, output.relative_path)
        return self.create_variant(
            output.relative_path,
            self.description,
            {
                "strategy": self.key,
                "mode": "inPlace",
                "padding": padding,
                "clip": clip.to_dict(),
                "elementRect": rect,
            },
        )
