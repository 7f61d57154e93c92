from __future__ import annotations

from ...render_session import ExecutionContext
from ..geometry import Clip, node_selector
from ..models import RepairRequest, Variant
from ..scripts import BACKGROUND_STACK_SETUP
from .base import CaptureStrategy, StrategyContext


class BackgroundStackStrategy(CaptureStrategy):
    """Composite a fullscreen base node and its overlay siblings into one asset."""

    id = "variant_background_stack"
    display_name = "Background Stack"
    key = "BACKGROUND_STACK"
    suffix = "stack"

    def run(self, request: RepairRequest, context: StrategyContext) -> Variant:
        node_id = request.target_node_id
        hints = context.capture_hints
        base_selector = node_selector(hints.source_node_id or node_id)
        stack_selectors = [node_selector(i) for i in dict.fromkeys(hints.background_stack_node_ids) if i]
        output = context.assets.allocate(node_id, self.suffix)

        def operation(ctx: ExecutionContext) -> tuple[Clip, int]:
            with self.isolation(ctx.page) as page:
                state = page.call(BACKGROUND_STACK_SETUP, base_selector, stack_selectors)
                if not isinstance(state, dict) or not state.get("rect"):
                    raise self.not_found(node_id, base_selector)
                clip = self.clip_for(node_id, state["rect"])
                self.capture(page, clip, output.absolute_path)
                return clip, int(state.get("revealed") or 0)

        clip, revealed = self.execute(request, context, operation)
        self.log_captured(node_id, output.relative_path)
        return self.create_variant(
            output.relative_path,
            "Composited background stack",
            {
                "strategy": self.key,
                "mode": "backgroundStack",
                "stackNodeIds": list(hints.background_stack_node_ids),
                "revealedOverlays": revealed,
                "clip": clip.to_dict(),
            },
        )
