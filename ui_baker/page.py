"""PageHandle: the live page operations the capture engine needs.

Wraps a CdpConnection with evaluation, viewport, navigation and screenshot
helpers. Not thread-safe by itself; RenderSession serializes access.
"""

from __future__ import annotations

import base64
import json
import time
from contextlib import suppress
from pathlib import Path
from typing import Any

from .config import Viewport
from .http_client import HttpClientError

TRANSPARENT = {"r": 0, "g": 0, "b": 0, "a": 0}


class PageHandle:
    def __init__(self, connection: Any, target_id: str = ""):
        self.conn = connection
        self.target_id = target_id
        self._page_enabled = False
        self._runtime_enabled = False

    def enable_domains(self) -> None:
        if not self._page_enabled:
            self.conn.send("Page.enable")
            self._page_enabled = True
        if not self._runtime_enabled:
            self.conn.send("Runtime.enable")
            self._runtime_enabled = True

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def eval_js(self, expression: str) -> Any:
        """Evaluate an expression and return its JSON value (undefined/null -> None)."""
        result = self.conn.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            message = exc.get("description") or details.get("text") or "JavaScript evaluation failed"
            raise HttpClientError(str(message))

        value = result.get("result")
        if not isinstance(value, dict):
            return None
        if value.get("type") == "undefined":
            return None
        if value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value")

    def call(self, function_source: str, *args: Any) -> Any:
        """Invoke a JS function literal with JSON-serializable arguments."""
        encoded = ", ".join(json.dumps(arg) for arg in args)
        return self.eval_js(f"({function_source})({encoded})")

    # ─────────────────────────────────────────────────────────────────────────
    # Viewport & navigation
    # ─────────────────────────────────────────────────────────────────────────

    def set_viewport(self, viewport: Viewport) -> None:
        self.conn.send(
            "Emulation.setDeviceMetricsOverride",
            {
                "width": int(viewport.width),
                "height": int(viewport.height),
                "deviceScaleFactor": float(viewport.device_scale_factor),
                "mobile": False,
            },
        )

    def navigate(self, url: str, *, wait_until: str = "domcontentloaded", timeout: float = 30.0) -> None:
        """Navigate and block until the DOM is parsed (or the full load, when asked)."""
        self.enable_domains()
        event = "Page.loadEventFired" if wait_until == "load" else "Page.domContentEventFired"
        self.conn.clear_events(event)
        result = self.conn.send("Page.navigate", {"url": url})
        error_text = result.get("errorText") if isinstance(result, dict) else None
        if error_text:
            raise HttpClientError(f"Navigation to {url} failed: {error_text}")
        if self.conn.wait_for_event(event, timeout=timeout) is None:
            raise HttpClientError(f"Navigation to {url} timed out after {timeout:.1f}s ({wait_until})")

    def wait_ready_state(self, timeout: float = 5.0, interval: float = 0.05) -> bool:
        """Poll document.readyState until 'complete'. Returns False on timeout."""
        deadline = time.time() + max(0.0, timeout)
        while True:
            if self.eval_js("document.readyState") == "complete":
                return True
            if time.time() >= deadline:
                return False
            time.sleep(interval)

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots
    # ─────────────────────────────────────────────────────────────────────────

    def screenshot(
        self,
        path: str | Path | None = None,
        *,
        clip: dict[str, int] | None = None,
        omit_background: bool = True,
        capture_beyond_viewport: bool = True,
    ) -> bytes:
        """Capture a PNG, optionally writing it to `path`. Returns the PNG bytes."""
        params: dict[str, Any] = {"format": "png", "fromSurface": True}
        if clip:
            params["clip"] = {**clip, "scale": 1}
        if capture_beyond_viewport:
            params["captureBeyondViewport"] = True

        if omit_background:
            self.conn.send("Emulation.setDefaultBackgroundColorOverride", {"color": TRANSPARENT})
        try:
            result = self.conn.send("Page.captureScreenshot", params)
        finally:
            if omit_background:
                with suppress(HttpClientError):
                    self.conn.send("Emulation.setDefaultBackgroundColorOverride", {})

        data = base64.b64decode(result.get("data") or "")
        if not data:
            raise HttpClientError("Page.captureScreenshot returned no data")
        if path is not None:
            out = Path(path)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(data)
        return data

    def close(self) -> None:
        self.conn.close()


__all__ = ["PageHandle"]
