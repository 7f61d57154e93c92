from __future__ import annotations

from ..geometry import to_padding
from ..models import RepairRequest
from .in_place import InPlaceStrategy

DEFAULT_EXPAND_PADDING = 16.0


class ExpandPaddingStrategy(InPlaceStrategy):
    """In-place capture with a generous fixed margin for glow that escapes the box."""

    id = "variant_padding"
    display_name = "Expand Padding"
    key = "EXPAND_PADDING"
    suffix = "padding"
    description = "In-place capture with expanded padding (rescues clipped glow/overflow)"

    def extra_padding(self, request: RepairRequest) -> float:
        if request.manual_params.get("expandPadding") is not None:
            return to_padding(request.manual_params["expandPadding"])
        return DEFAULT_EXPAND_PADDING
