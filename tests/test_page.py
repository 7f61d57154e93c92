from __future__ import annotations

import base64
from pathlib import Path
from typing import Any

import pytest

from ui_baker.config import Viewport
from ui_baker.http_client import HttpClientError
from ui_baker.page import PageHandle


class DummyConn:
    def __init__(self, results: dict[str, Any] | None = None, events: dict[str, Any] | None = None) -> None:
        self.results = results or {}
        self.events = events or {}
        self.sent: list[tuple[str, dict | None]] = []
        self.cleared: list[str] = []

    def send(self, method: str, params: dict | None = None) -> dict:
        self.sent.append((method, params))
        result = self.results.get(method, {})
        if isinstance(result, Exception):
            raise result
        return result(params) if callable(result) else result

    def clear_events(self, name: str) -> None:
        self.cleared.append(name)

    def wait_for_event(self, name: str, timeout: float = 10.0):
        return self.events.get(name)

    def close(self) -> None:
        return None


def test_eval_js_returns_value_and_maps_undefined_to_none() -> None:
    conn = DummyConn({"Runtime.evaluate": {"result": {"type": "number", "value": 3}}})
    assert PageHandle(conn).eval_js("1 + 2") == 3
    conn.results["Runtime.evaluate"] = {"result": {"type": "undefined"}}
    assert PageHandle(conn).eval_js("void 0") is None
    conn.results["Runtime.evaluate"] = {"result": {"type": "object", "subtype": "null"}}
    assert PageHandle(conn).eval_js("null") is None


def test_eval_js_raises_on_exception_details() -> None:
    conn = DummyConn({"Runtime.evaluate": {"exceptionDetails": {"exception": {"description": "ReferenceError: x"}}}})
    with pytest.raises(HttpClientError, match="ReferenceError"):
        PageHandle(conn).eval_js("x")


def test_call_serializes_arguments_as_json() -> None:
    conn = DummyConn({"Runtime.evaluate": {"result": {"type": "boolean", "value": True}}})
    assert PageHandle(conn).call("(a, b) => a.length === b.n", '[x="1"]', {"n": 7}) is True
    expression = conn.sent[-1][1]["expression"]
    assert expression == '((a, b) => a.length === b.n)("[x=\\"1\\"]", {"n": 7})'


def test_set_viewport_sends_device_metrics() -> None:
    conn = DummyConn()
    PageHandle(conn).set_viewport(Viewport(375, 812, 2.0))
    assert conn.sent == [
        (
            "Emulation.setDeviceMetricsOverride",
            {"width": 375, "height": 812, "deviceScaleFactor": 2.0, "mobile": False},
        )
    ]


def test_navigate_waits_for_content_parsed_event() -> None:
    conn = DummyConn({"Page.navigate": {"frameId": "f"}}, {"Page.domContentEventFired": {"timestamp": 1}})
    page = PageHandle(conn)
    page.navigate("file:///tmp/a.html", timeout=1)
    assert conn.cleared == ["Page.domContentEventFired"]
    assert ("Page.navigate", {"url": "file:///tmp/a.html"}) in conn.sent
    # Domains are enabled once.
    page.navigate("file:///tmp/b.html", timeout=1)
    assert [m for m, _ in conn.sent].count("Page.enable") == 1


def test_navigate_raises_on_error_text_and_timeout() -> None:
    conn = DummyConn({"Page.navigate": {"errorText": "net::ERR_FILE_NOT_FOUND"}})
    with pytest.raises(HttpClientError, match="ERR_FILE_NOT_FOUND"):
        PageHandle(conn).navigate("file:///missing.html")

    conn = DummyConn({"Page.navigate": {}})
    with pytest.raises(HttpClientError, match="timed out"):
        PageHandle(conn).navigate("file:///slow.html", wait_until="load", timeout=0.1)


def test_wait_ready_state_times_out() -> None:
    conn = DummyConn({"Runtime.evaluate": {"result": {"type": "string", "value": "interactive"}}})
    assert PageHandle(conn).wait_ready_state(timeout=0.05, interval=0.01) is False
    conn.results["Runtime.evaluate"] = {"result": {"type": "string", "value": "complete"}}
    assert PageHandle(conn).wait_ready_state(timeout=0.05) is True


def test_screenshot_transparent_background_is_restored(tmp_path: Path) -> None:
    payload = b"\x89PNG fake"
    conn = DummyConn({"Page.captureScreenshot": {"data": base64.b64encode(payload).decode()}})
    out = tmp_path / "nested" / "shot.png"
    data = PageHandle(conn).screenshot(out, clip={"x": 1, "y": 2, "width": 3, "height": 4})

    assert data == payload
    assert out.read_bytes() == payload
    methods = [m for m, _ in conn.sent]
    assert methods == [
        "Emulation.setDefaultBackgroundColorOverride",
        "Page.captureScreenshot",
        "Emulation.setDefaultBackgroundColorOverride",
    ]
    params = conn.sent[1][1]
    assert params["clip"] == {"x": 1, "y": 2, "width": 3, "height": 4, "scale": 1}
    assert params["captureBeyondViewport"] is True


def test_screenshot_restores_background_even_when_capture_fails() -> None:
    conn = DummyConn({"Page.captureScreenshot": HttpClientError("boom")})
    with pytest.raises(HttpClientError):
        PageHandle(conn).screenshot()
    assert [m for m, _ in conn.sent][-1] == "Emulation.setDefaultBackgroundColorOverride"


def test_screenshot_opaque_skips_background_override() -> None:
    conn = DummyConn({"Page.captureScreenshot": {"data": base64.b64encode(b"x").decode()}})
    PageHandle(conn).screenshot(omit_background=False)
    assert [m for m, _ in conn.sent] == ["Page.captureScreenshot"]


def test_screenshot_without_data_raises() -> None:
    conn = DummyConn({"Page.captureScreenshot": {"data": ""}})
    with pytest.raises(HttpClientError):
        PageHandle(conn).screenshot(omit_background=False)
