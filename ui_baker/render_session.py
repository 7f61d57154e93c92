"""Serialized access to one persistent Chrome page.

All page work goes through ``RenderSession.execute``. Two exclusive sections
are layered: the page section spans a caller's whole operation (mutation plus
screenshot), the session section only guards bootstrap bookkeeping (engine
launch, viewport, navigation) and ``close()``. The readyState settle wait after
a fresh navigation runs under the page section alone.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from .cdp import CdpConnection
from .config import BakeConfig, Viewport
from .errors import EngineStartError, FileMissingError
from .exclusive import ExclusiveSection
from .http_client import HttpClientError
from .launcher import BrowserLauncher
from .navigation import file_url, navigate_document, settle_document
from .page import PageHandle

logger = logging.getLogger("ui_baker.render_session")

T = TypeVar("T")


@dataclass
class ExecutionContext:
    page: PageHandle
    reused: bool
    current_url: str
    html_path: str


def open_cdp_page(launcher: BrowserLauncher) -> PageHandle:
    target = launcher.open_page("about:blank")
    conn = CdpConnection(target.ws_url, timeout=launcher.config.cdp_timeout)
    return PageHandle(conn, target_id=target.target_id)


class RenderSession:
    _default: RenderSession | None = None
    _default_lock = threading.Lock()

    @classmethod
    def get_instance(cls, config: BakeConfig | None = None) -> RenderSession:
        """Lazily created process-wide session for callers that do not inject one."""
        with cls._default_lock:
            if cls._default is None:
                cls._default = cls(config)
            return cls._default

    def __init__(
        self,
        config: BakeConfig | None = None,
        *,
        launcher_factory: Callable[[BakeConfig], Any] = BrowserLauncher,
        page_factory: Callable[[Any], Any] = open_cdp_page,
    ) -> None:
        self.config = config or BakeConfig.from_env()
        self._launcher_factory = launcher_factory
        self._page_factory = page_factory

        self._launcher: Any = None
        self._page: Any = None
        self._current_url = ""
        self._current_viewport: Viewport | None = None

        self._session_section = ExclusiveSection()
        self._page_section = ExclusiveSection()

    @property
    def current_url(self) -> str:
        return self._current_url

    @property
    def current_viewport(self) -> Viewport | None:
        return self._current_viewport

    def execute(
        self,
        html_path: str | Path,
        operation: Callable[[ExecutionContext], T],
        *,
        viewport: Viewport | dict | None = None,
        navigation_timeout: float | None = None,
    ) -> T:
        if not html_path or not str(html_path).strip():
            raise ValueError("RenderSession.execute requires html_path")
        if not callable(operation):
            raise TypeError("RenderSession.execute requires a callable operation")

        with self._page_section:
            ctx = self._ensure_ready(html_path, viewport, navigation_timeout)
            if not ctx.reused:
                settle_document(ctx.page, ctx.current_url, self.config)
            return operation(ctx)

    def close(self) -> None:
        with self._session_section:
            page, launcher = self._page, self._launcher
            self._page = None
            self._launcher = None
            self._current_url = ""
            self._current_viewport = None
            if page is not None:
                with suppress(HttpClientError, OSError):
                    page.close()
            if launcher is not None:
                launcher.stop()
                logger.info("render_session_closed")

    # ─────────────────────────────────────────────────────────────────────────
    # Readiness
    # ─────────────────────────────────────────────────────────────────────────

    def _ensure_ready(
        self,
        html_path: str | Path,
        viewport: Viewport | dict | None,
        navigation_timeout: float | None,
    ) -> ExecutionContext:
        with self._session_section:
            resolved = Path(str(html_path).strip()).expanduser().resolve()
            if not resolved.is_file():
                raise FileMissingError(
                    strategy="render_session",
                    action="resolve document",
                    reason=f"HTML not found: {resolved}",
                    suggestion="Check htmlPath; it must point to an existing file",
                    details={"htmlPath": str(resolved)},
                )

            self._ensure_engine()
            self._ensure_viewport(viewport)

            target_url = file_url(resolved)
            if self._current_url == target_url:
                return ExecutionContext(self._page, True, self._current_url, str(resolved))

            self._current_url = ""
            navigate_document(
                self._page, target_url, self.config, navigation_timeout=navigation_timeout, settle=False
            )
            self._current_url = target_url
            logger.info("render_session_navigated url=%s", target_url)
            return ExecutionContext(self._page, False, self._current_url, str(resolved))

    def _ensure_engine(self) -> None:
        if self._page is not None:
            return

        launcher = self._launcher or self._launcher_factory(self.config)
        self._launcher = launcher
        result = launcher.ensure_running()
        if not result.started and not launcher.cdp_ready():
            raise EngineStartError(
                strategy="render_session",
                action="launch engine",
                reason=result.message,
                suggestion="Set BAKE_BROWSER_BINARY to a Chrome/Chromium executable",
                details={"command": list(result.command)},
            )

        try:
            page = self._page_factory(launcher)
            page.enable_domains()
        except HttpClientError as exc:
            raise EngineStartError(
                strategy="render_session",
                action="open page",
                reason=str(exc),
                suggestion="Check that the DevTools endpoint is reachable",
            ) from exc
        self._page = page
        self._current_url = ""
        self._current_viewport = None

    def _ensure_viewport(self, viewport: Viewport | dict | None) -> None:
        target = Viewport.normalize(viewport if viewport is not None else self.config.viewport)
        if target == self._current_viewport:
            return
        self._page.set_viewport(target)
        self._current_viewport = target


__all__ = ["ExecutionContext", "RenderSession", "open_cdp_page"]
