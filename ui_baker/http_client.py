from __future__ import annotations

import json
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen


class HttpClientError(Exception):
    pass


def http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from a local DevTools HTTP endpoint."""
    req = Request(url, headers={"User-Agent": "ui-baker/1.0"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except (TimeoutError, URLError, OSError) as exc:
        raise HttpClientError(str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise HttpClientError(f"Invalid JSON from {url}: {exc}") from exc
