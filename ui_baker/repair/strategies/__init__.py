from .background_stack import BackgroundStackStrategy
from .base import CaptureStrategy, StrategyContext, cleanup_page
from .clone import CloneStrategy
from .color_correction import GAMMA_FILTER, VIVID_FILTER, ColorCorrectionStrategy, resolve_manual_filter
from .expand_padding import DEFAULT_EXPAND_PADDING, ExpandPaddingStrategy
from .in_place import InPlaceStrategy
from .smart_generate import SmartGenerateStrategy, default_strategies

__all__ = [
    "DEFAULT_EXPAND_PADDING",
    "GAMMA_FILTER",
    "VIVID_FILTER",
    "BackgroundStackStrategy",
    "CaptureStrategy",
    "CloneStrategy",
    "ColorCorrectionStrategy",
    "ExpandPaddingStrategy",
    "InPlaceStrategy",
    "SmartGenerateStrategy",
    "StrategyContext",
    "cleanup_page",
    "default_strategies",
    "resolve_manual_filter",
]
