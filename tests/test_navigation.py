from __future__ import annotations

import logging

import pytest

from ui_baker.config import BakeConfig
from ui_baker.http_client import HttpClientError
from ui_baker.navigation import file_url, navigate_document, resolve_timeouts, settle_document


class DummyPage:
    def __init__(self, *, settles: bool = True, fail: bool = False) -> None:
        self.settles = settles
        self.fail = fail
        self.navigations: list[tuple[str, str, float]] = []
        self.settle_calls: list[float] = []

    def navigate(self, url: str, *, wait_until: str = "domcontentloaded", timeout: float = 30.0) -> None:
        self.navigations.append((url, wait_until, timeout))
        if self.fail:
            raise HttpClientError(f"Navigation to {url} timed out")

    def wait_ready_state(self, timeout: float = 5.0, interval: float = 0.05) -> bool:
        self.settle_calls.append(timeout)
        return self.settles


def _config() -> BakeConfig:
    return BakeConfig(binary_path="chrome", profile_path="/tmp/profile")


def test_settle_timeout_is_a_warning(caplog: pytest.LogCaptureFixture) -> None:
    page = DummyPage(settles=False)
    with caplog.at_level(logging.WARNING, logger="ui_baker.navigation"):
        outcome = navigate_document(page, "file:///doc.html", _config())
    assert outcome.wait_until == "domcontentloaded"
    assert outcome.settled is False
    assert page.navigations[0][1] == "domcontentloaded"
    assert any("navigation_settle_timeout" in r.getMessage() for r in caplog.records)


def test_settled_navigation_logs_nothing(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="ui_baker.navigation"):
        outcome = navigate_document(DummyPage(), "file:///doc.html", _config())
    assert outcome.settled
    assert not caplog.records


def test_strict_mode_waits_for_load_and_timeout_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BAKE_DISABLE_NAV_LOAD_TIMEOUT_FALLBACK", "1")
    page = DummyPage()
    outcome = navigate_document(page, "file:///doc.html", _config())
    assert outcome.wait_until == "load"
    assert outcome.settle_skipped
    assert page.settle_calls == []

    with pytest.raises(HttpClientError):
        navigate_document(DummyPage(fail=True), "file:///doc.html", _config())


def test_timeouts_are_read_from_env_per_call(monkeypatch: pytest.MonkeyPatch) -> None:
    cfg = _config()
    assert resolve_timeouts(cfg) == (30.0, 5.0, False)
    monkeypatch.setenv("BAKE_NAV_TIMEOUT_MS", "1200")
    monkeypatch.setenv("BAKE_NAV_SETTLE_TIMEOUT_MS", "300")
    assert resolve_timeouts(cfg) == (1.2, 0.3, False)
    assert resolve_timeouts(cfg, navigation_timeout=7)[0] == 7


def test_file_url_is_absolute(tmp_path) -> None:
    target = tmp_path / "a b.html"
    assert file_url(target) == target.resolve().as_uri()
    assert file_url(target).startswith("file://")


def test_deferred_settle_is_left_to_the_caller(caplog: pytest.LogCaptureFixture) -> None:
    page = DummyPage(settles=False)
    outcome = navigate_document(page, "file:///doc.html", _config(), settle=False)
    assert outcome.settle_skipped
    assert page.settle_calls == []

    with caplog.at_level(logging.WARNING, logger="ui_baker.navigation"):
        assert settle_document(page, "file:///doc.html", _config()) is False
    assert page.settle_calls == [5.0]
    assert any("navigation_settle_timeout" in r.getMessage() for r in caplog.records)


def test_strict_mode_skips_deferred_settle(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BAKE_DISABLE_NAV_LOAD_TIMEOUT_FALLBACK", "1")
    page = DummyPage(settles=False)
    assert settle_document(page, "file:///doc.html", _config()) is True
    assert page.settle_calls == []
