from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path

_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]+")


def sanitize_token(value: object, fallback: str) -> str:
    normalized = str(value or "").strip()
    if not normalized:
        return fallback
    return _UNSAFE.sub("_", normalized)


def resolve_workspace_root(start: str | Path | None = None) -> Path:
    """Walk up (max 6 levels) to a directory holding both Assets/ and tool/."""
    origin = Path(start or Path.cwd()).resolve()
    cursor = origin
    for _ in range(6):
        if (cursor / "Assets").exists() and (cursor / "tool").exists():
            return cursor
        if cursor.parent == cursor:
            break
        cursor = cursor.parent
    return origin


@dataclass(frozen=True)
class AssetPath:
    absolute_path: Path
    relative_path: str


class AssetAllocator:
    """Hands out unique PNG paths under the repair cache directory."""

    def __init__(self, workspace_root: str | Path | None = None, cache_dir: str | Path | None = None) -> None:
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else resolve_workspace_root()
        self.cache_dir = Path(cache_dir).resolve() if cache_dir else self.workspace_root / "temp" / "repair"
        self._lock = threading.Lock()
        self._reserved: set[Path] = set()

    def allocate(self, node_id: str, suffix: str, ext: str = ".png") -> AssetPath:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        safe_node = sanitize_token(node_id, "node")
        safe_suffix = sanitize_token(suffix, "variant")
        extension = ext if str(ext or "").startswith(".") else f".{ext or 'png'}"

        # Concurrent strategies may allocate before any file is written.
        with self._lock:
            candidate = self.cache_dir / f"{safe_node}_{safe_suffix}{extension}"
            serial = 1
            while candidate.exists() or candidate in self._reserved:
                candidate = self.cache_dir / f"{safe_node}_{safe_suffix}_{serial}{extension}"
                serial += 1
            self._reserved.add(candidate)

        relative = os.path.relpath(candidate, self.workspace_root).replace("\\", "/")
        return AssetPath(absolute_path=candidate, relative_path=relative)


__all__ = ["AssetAllocator", "AssetPath", "resolve_workspace_root", "sanitize_token"]
