"""Shared strategy protocol and capture helpers.

Every strategy follows the same recipe inside one ``RenderSession.execute``
call: clear leftovers, inject an isolation mutation, compute the clip,
screenshot, and tear the mutation down again whatever happened.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from ...config import Viewport
from ...errors import InvalidClipError, NotFoundError
from ...page import PageHandle
from ...render_session import ExecutionContext, RenderSession
from ..assets import AssetAllocator
from ..geometry import Clip, node_selector, normalize_clip, padded_rect
from ..models import CaptureHints, RepairRequest, Variant
from ..scripts import CLEANUP, IN_PLACE_SETUP, ISOLATION_STYLE_IDS

logger = logging.getLogger("ui_baker.repair.strategies")

T = TypeVar("T")

StrategyResult = Variant | list[Variant] | None


@dataclass
class StrategyContext:
    render_session: RenderSession
    assets: AssetAllocator
    capture_hints: CaptureHints = field(default_factory=CaptureHints)
    viewport: Viewport | None = None
    node_context: dict[str, Any] = field(default_factory=dict)
    dry_run: bool = False


def cleanup_page(page: PageHandle) -> int:
    """Remove every isolation artifact. Safe to call repeatedly."""
    return int(page.call(CLEANUP, list(ISOLATION_STYLE_IDS)) or 0)


class CaptureStrategy(ABC):
    id: str = ""
    display_name: str = ""
    key: str = ""

    @abstractmethod
    def run(self, request: RepairRequest, context: StrategyContext) -> StrategyResult: ...

    def create_variant(
        self,
        image_path: str,
        description: str,
        metadata: dict[str, Any] | None = None,
        *,
        variant_id: str | None = None,
        name: str | None = None,
    ) -> Variant:
        return Variant(
            id=variant_id or self.id,
            name=name or self.display_name,
            image_path=image_path,
            description=description,
            metadata=metadata or {},
        )

    def execute(self, request: RepairRequest, context: StrategyContext, operation: Callable[[ExecutionContext], T]) -> T:
        return context.render_session.execute(request.html_path, operation, viewport=context.viewport)

    @contextmanager
    def isolation(self, page: PageHandle) -> Iterator[PageHandle]:
        cleanup_page(page)
        try:
            yield page
        finally:
            cleanup_page(page)

    # ─────────────────────────────────────────────────────────────────────────
    # Errors
    # ─────────────────────────────────────────────────────────────────────────

    def not_found(self, node_id: str, selector: str) -> NotFoundError:
        return NotFoundError(
            strategy=type(self).__name__,
            action="locate target",
            reason=f"target not found for {node_id}",
            suggestion="Check that the node exists in this document and has a non-zero box",
            details={"nodeId": node_id, "selector": selector},
        )

    def invalid_clip(self, node_id: str, rect: Any, padding: float = 0.0) -> InvalidClipError:
        return InvalidClipError(
            strategy=type(self).__name__,
            action="compute clip",
            reason=f"invalid clip for {node_id}",
            suggestion="The target box is empty or non-finite",
            details={"nodeId": node_id, "rect": rect, "padding": padding},
        )

    def clip_for(self, node_id: str, rect: dict[str, Any] | None, padding: float = 0.0) -> Clip:
        clip = normalize_clip(padded_rect(rect, padding)) if isinstance(rect, dict) else None
        if clip is None:
            raise self.invalid_clip(node_id, rect, padding)
        return clip

    # ─────────────────────────────────────────────────────────────────────────
    # Capture helpers
    # ─────────────────────────────────────────────────────────────────────────

    def setup_in_place(
        self,
        page: PageHandle,
        request: RepairRequest,
        hints: CaptureHints,
        style_id: str,
    ) -> dict[str, Any]:
        """Mark the live target and inject scoped isolation rules; returns its geometry."""
        node_id = request.target_node_id
        primary = node_selector(node_id)
        fallback = ""
        if hints.source_node_id and hints.source_node_id != node_id:
            fallback = node_selector(hints.source_node_id)
        geometry = page.call(IN_PLACE_SETUP, primary, fallback, style_id, hints.to_script_options())
        if not isinstance(geometry, dict) or not geometry.get("rect"):
            raise self.not_found(node_id, primary)
        return geometry

    def capture(self, page: PageHandle, clip: Clip, path: str | Path | None = None) -> bytes:
        return page.screenshot(path, clip=clip.to_dict(), omit_background=True, capture_beyond_viewport=True)

    def log_captured(self, node_id: str, relative_path: str) -> None:
        logger.info("strategy_captured strategy=%s node=%s path=%s", self.key, node_id, relative_path)


__all__ = ["CaptureStrategy", "StrategyContext", "StrategyResult", "cleanup_page"]
