from .assets import AssetAllocator, AssetPath
from .models import MANUAL, SMART_GENERATE, CaptureHints, RepairRequest, RepairResult, Variant
from .service import RepairService

__all__ = [
    "MANUAL",
    "SMART_GENERATE",
    "AssetAllocator",
    "AssetPath",
    "CaptureHints",
    "RepairRequest",
    "RepairResult",
    "RepairService",
    "Variant",
]
