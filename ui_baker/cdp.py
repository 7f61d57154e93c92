"""Low-level CDP WebSocket connection for a single page target."""

from __future__ import annotations

import json
import time
from contextlib import suppress
from typing import Any

import websocket

from .http_client import HttpClientError


class CdpConnection:
    """Synchronous CDP client: one command in flight, events buffered while waiting."""

    def __init__(self, ws_url: str, timeout: float = 10.0):
        try:
            self.ws = websocket.create_connection(ws_url, timeout=timeout)
        except (OSError, websocket.WebSocketException) as exc:
            raise HttpClientError(f"CDP connect failed: {exc}") from exc
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        # Events received while waiting for a response must not be dropped,
        # otherwise a later wait_for_event() misses e.g. domContentEventFired.
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 500

    def _push_event(self, event: dict[str, Any]) -> None:
        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            del self._event_queue[: len(self._event_queue) - self._max_event_queue]

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        for i, ev in enumerate(self._event_queue):
            if ev.get("method") == event_name:
                self._event_queue.pop(i)
                params = ev.get("params")
                return params if isinstance(params, dict) else {}
        return None

    def clear_events(self, event_name: str) -> None:
        self._event_queue = [ev for ev in self._event_queue if ev.get("method") != event_name]

    def _recv(self, remaining: float) -> dict[str, Any] | None:
        """Receive one message; None on socket timeout or undecodable frame."""
        try:
            self.ws.settimeout(min(0.5, max(0.01, remaining)))
            raw = self.ws.recv()
        except websocket.WebSocketTimeoutException:
            return None
        except (OSError, websocket.WebSocketException) as exc:
            if isinstance(exc, TimeoutError) or "timed out" in str(exc).lower():
                return None
            raise HttpClientError(str(exc)) from exc
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send a CDP command and block until its response arrives."""
        msg_id = self._next_id
        self._next_id += 1
        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params
        try:
            self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
            self.ws.send(json.dumps(msg))
        except (OSError, websocket.WebSocketException) as exc:
            raise HttpClientError(str(exc)) from exc

        deadline = time.time() + self.timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise HttpClientError(f"CDP response timed out ({method})")
            data = self._recv(remaining)
            if data is None:
                continue
            if isinstance(data.get("method"), str) and "id" not in data:
                self._push_event(data)
                continue
            if data.get("id") == msg_id:
                if "error" in data:
                    raise HttpClientError(f"{method}: {data['error']}")
                return data.get("result", {})

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        """Wait for a CDP event; None when it does not arrive in time."""
        queued = self.pop_event(event_name)
        if queued is not None:
            return queued

        deadline = time.time() + timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                return None
            data = self._recv(remaining)
            if data is None:
                continue
            if isinstance(data.get("method"), str) and "id" not in data:
                if data.get("method") == event_name:
                    params = data.get("params")
                    return params if isinstance(params, dict) else {}
                self._push_event(data)

    def close(self) -> None:
        with suppress(Exception):
            self.ws.close()
