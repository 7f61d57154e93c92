from __future__ import annotations

import contextlib
import logging
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from .cdp import CdpConnection
from .config import BakeConfig, expand_path
from .http_client import HttpClientError, http_get_json

logger = logging.getLogger("ui_baker.launcher")


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str


@dataclass(frozen=True)
class PageTarget:
    target_id: str
    ws_url: str


class BrowserLauncher:
    """Owns one headless Chrome process reachable over CDP."""

    def __init__(self, config: BakeConfig | None = None) -> None:
        self.config = config or BakeConfig.from_env()
        self.process: subprocess.Popen | None = None

    @staticmethod
    def find_free_port() -> int:
        with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
            s.bind(("127.0.0.1", 0))
            return s.getsockname()[1]

    def _endpoint(self, path: str) -> str:
        return f"http://127.0.0.1:{self.config.cdp_port}{path}"

    def cdp_ready(self, timeout: float = 0.4) -> bool:
        if not self.config.cdp_port:
            return False
        try:
            http_get_json(self._endpoint("/json/version"), timeout=timeout)
        except HttpClientError:
            return False
        return True

    def build_launch_command(self) -> list[str]:
        flags = [
            f"--remote-debugging-port={self.config.cdp_port}",
            f"--user-data-dir={expand_path(self.config.profile_path)}",
            "--remote-allow-origins=*",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-gpu",
            "--disable-dev-shm-usage",
            "--hide-scrollbars",
            "--allow-file-access-from-files",
        ]
        if self.config.headless:
            flags.append("--headless=new")
        return [self.config.binary_path, *flags, *self.config.extra_flags]

    def ensure_running(self, timeout: float = 10.0) -> LaunchResult:
        if self.process is not None and self.process.poll() is None and self.cdp_ready():
            return LaunchResult([], False, "Chrome already running")

        if not self.config.cdp_port:
            self.config.cdp_port = self.find_free_port()

        with contextlib.suppress(OSError):
            Path(expand_path(self.config.profile_path)).mkdir(parents=True, exist_ok=True)

        cmd = self.build_launch_command()
        try:
            self.process = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            return LaunchResult(cmd, False, str(exc))

        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.cdp_ready():
                logger.info("chrome_launched port=%s", self.config.cdp_port)
                return LaunchResult(cmd, True, "Chrome launched")
            if self.process.poll() is not None:
                return LaunchResult(cmd, False, f"Chrome exited with code {self.process.returncode}")
            time.sleep(0.1)
        return LaunchResult(cmd, False, "Chrome launch timed out")

    def open_page(self, url: str = "about:blank") -> PageTarget:
        """Create a new tab through the browser-level socket and return its page socket URL."""
        version = http_get_json(self._endpoint("/json/version"))
        browser_ws = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
        if not browser_ws:
            raise HttpClientError("CDP browser WebSocket URL not found")

        conn = CdpConnection(browser_ws, timeout=5.0)
        try:
            result = conn.send("Target.createTarget", {"url": url})
        finally:
            conn.close()
        target_id = result.get("targetId")
        if not target_id:
            raise HttpClientError("Failed to create browser tab")

        for target in http_get_json(self._endpoint("/json/list")) or []:
            if target.get("id") == target_id and target.get("webSocketDebuggerUrl"):
                return PageTarget(target_id=target_id, ws_url=target["webSocketDebuggerUrl"])
        raise HttpClientError(f"WebSocket URL for tab {target_id} not found")

    def stop(self, *, timeout: float = 2.0) -> bool:
        """Best-effort stop of the launcher-owned Chrome process."""
        proc = self.process
        if proc is None:
            return False
        self.process = None
        if proc.poll() is not None:
            return True

        with contextlib.suppress(OSError):
            proc.terminate()
        try:
            proc.wait(timeout=max(0.1, float(timeout)))
        except subprocess.TimeoutExpired:
            with contextlib.suppress(OSError):
                proc.kill()
        return True
