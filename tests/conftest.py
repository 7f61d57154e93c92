from __future__ import annotations

import io
import threading
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from ui_baker.render_session import ExecutionContext
from ui_baker.repair.assets import AssetAllocator
from ui_baker.repair.scripts import CLEANUP

BAKE_ENV = (
    "BAKE_DISABLE_OPACITY_DECOUPLED",
    "BAKE_DISABLE_LOW_ALPHA_CONTEXT_CAPTURE",
    "BAKE_DISABLE_BACKGROUND_STACK_COMPOSITE",
    "BAKE_DISABLE_UNDERLAY_FAINT_BORDER",
    "BAKE_DISABLE_NAV_LOAD_TIMEOUT_FALLBACK",
    "BAKE_NAV_TIMEOUT_MS",
    "BAKE_NAV_SETTLE_TIMEOUT_MS",
)


def png_bytes(color: tuple[int, int, int, int] = (128, 128, 128, 255), size: tuple[int, int] = (40, 20)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakePage:
    """Records JS calls and screenshots; answers calls from a script -> value map."""

    def __init__(self, responses: dict[str, Any] | None = None, png: bytes | None = None) -> None:
        self.responses = dict(responses or {})
        self.png = png or png_bytes()
        self.calls: list[tuple[str, tuple]] = []
        self.screenshots: list[dict[str, Any]] = []

    def call(self, source: str, *args: Any) -> Any:
        self.calls.append((source, args))
        response = self.responses.get(source)
        return response(*args) if callable(response) else response

    def screenshot(self, path=None, *, clip=None, omit_background=True, capture_beyond_viewport=True) -> bytes:
        self.screenshots.append(
            {"path": path, "clip": clip, "omit_background": omit_background, "beyond": capture_beyond_viewport}
        )
        if path is not None:
            out = Path(path)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(self.png)
        return self.png

    def cleanup_count(self) -> int:
        return sum(1 for source, _ in self.calls if source == CLEANUP)


class FakeSession:
    """Stand-in for RenderSession: runs operations one at a time on a FakePage."""

    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.executions: list[dict[str, Any]] = []
        self.closed = 0
        self._lock = threading.Lock()

    def execute(self, html_path, operation, *, viewport=None, navigation_timeout=None):
        with self._lock:
            self.executions.append({"html_path": str(html_path), "viewport": viewport})
            return operation(ExecutionContext(self.page, bool(self.executions[:-1]), "file:///doc.html", str(html_path)))

    def close(self) -> None:
        self.closed += 1


@pytest.fixture(autouse=True)
def _clean_bake_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in BAKE_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def html_file(tmp_path: Path) -> Path:
    path = tmp_path / "page.html"
    path.write_text("<html><body><div data-bake-id='n1'>hi</div></body></html>", encoding="utf-8")
    return path


@pytest.fixture
def assets(tmp_path: Path) -> AssetAllocator:
    return AssetAllocator(workspace_root=tmp_path, cache_dir=tmp_path / "cache")
