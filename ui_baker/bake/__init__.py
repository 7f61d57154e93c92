from .baker import IMAGES_DIR, BakeInPlaceStrategy, PlanBaker, TaskOutput, write_captures

__all__ = ["IMAGES_DIR", "BakeInPlaceStrategy", "PlanBaker", "TaskOutput", "write_captures"]
