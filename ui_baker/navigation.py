"""Document navigation with a content-parsed gate and a best-effort settle wait."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .config import BakeConfig, env_flag, to_positive_int

logger = logging.getLogger("ui_baker.navigation")


@dataclass
class NavigationOutcome:
    url: str
    wait_until: str
    settled: bool
    settle_skipped: bool = False


def file_url(path: str | Path) -> str:
    return Path(path).resolve().as_uri()


def resolve_timeouts(config: BakeConfig, navigation_timeout: float | None = None) -> tuple[float, float, bool]:
    """Navigation/settle timeouts and the fallback switch, re-read from env on every call."""
    nav_ms = to_positive_int(
        os.environ.get("BAKE_NAV_TIMEOUT_MS"), int(config.navigation_timeout * 1000)
    )
    settle_ms = to_positive_int(
        os.environ.get("BAKE_NAV_SETTLE_TIMEOUT_MS"), int(config.settle_timeout * 1000)
    )
    nav_timeout = navigation_timeout if navigation_timeout and navigation_timeout > 0 else nav_ms / 1000.0
    disable_fallback = env_flag("BAKE_DISABLE_NAV_LOAD_TIMEOUT_FALLBACK", config.disable_nav_load_timeout_fallback)
    return nav_timeout, settle_ms / 1000.0, disable_fallback


def navigate_document(
    page,
    url: str,
    config: BakeConfig,
    *,
    navigation_timeout: float | None = None,
    settle: bool = True,
) -> NavigationOutcome:
    """Navigate ``page`` to ``url``.

    With ``settle=False`` only the content-parsed gate is awaited; the caller
    runs ``settle_document`` afterwards, outside whatever lock it holds.
    """
    nav_timeout, _, disable_fallback = resolve_timeouts(config, navigation_timeout)

    if disable_fallback:
        # Strict mode: full load event, timeout is fatal.
        page.navigate(url, wait_until="load", timeout=nav_timeout)
        return NavigationOutcome(url=url, wait_until="load", settled=True, settle_skipped=True)

    page.navigate(url, wait_until="domcontentloaded", timeout=nav_timeout)
    if not settle:
        return NavigationOutcome(url=url, wait_until="domcontentloaded", settled=False, settle_skipped=True)
    return NavigationOutcome(url=url, wait_until="domcontentloaded", settled=settle_document(page, url, config))


def settle_document(page, url: str, config: BakeConfig) -> bool:
    """Best-effort wait for ``readyState == complete``; a timeout only warns."""
    _, settle_timeout, disable_fallback = resolve_timeouts(config)
    if disable_fallback:
        return True
    settled = page.wait_ready_state(timeout=settle_timeout)
    if not settled:
        logger.warning("navigation_settle_timeout url=%s timeout=%.1fs; continuing", url, settle_timeout)
    return settled


__all__ = ["NavigationOutcome", "file_url", "navigate_document", "resolve_timeouts", "settle_document"]
