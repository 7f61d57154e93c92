from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait

from ...errors import AggregateStrategyError
from ..models import RepairRequest, Variant
from .base import CaptureStrategy, StrategyContext
from .clone import CloneStrategy
from .color_correction import ColorCorrectionStrategy
from .expand_padding import ExpandPaddingStrategy
from .in_place import InPlaceStrategy

logger = logging.getLogger("ui_baker.repair.strategies")


def default_strategies() -> list[CaptureStrategy]:
    return [CloneStrategy(), ExpandPaddingStrategy(), InPlaceStrategy(), ColorCorrectionStrategy()]


class SmartGenerateStrategy(CaptureStrategy):
    """Run every capture strategy concurrently and keep whatever succeeded.

    All tasks settle before the outcome is decided; one failure never
    cancels its siblings. Only an empty union is an error.
    """

    id = "smart_generate"
    display_name = "Smart Generation"
    key = "SMART_GENERATE"

    def __init__(self, strategies: Sequence[CaptureStrategy] | None = None) -> None:
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    def run(self, request: RepairRequest, context: StrategyContext) -> list[Variant]:
        if not self.strategies:
            raise AggregateStrategyError(request.target_node_id, ["no strategies configured"])

        with ThreadPoolExecutor(max_workers=len(self.strategies)) as ex:
            futs = [ex.submit(s.run, request, context) for s in self.strategies]
            wait(futs)

        variants: list[Variant] = []
        errors: list[str] = []
        for strategy, fut in zip(self.strategies, futs):
            exc = fut.exception()
            if exc is not None:
                logger.warning("strategy_failed strategy=%s node=%s error=%s", strategy.key, request.target_node_id, exc)
                errors.append(str(exc))
                continue
            result = fut.result()
            if isinstance(result, list):
                variants.extend(v for v in result if v is not None)
            elif result is not None:
                variants.append(result)

        if not variants:
            raise AggregateStrategyError(request.target_node_id, errors)
        return variants
