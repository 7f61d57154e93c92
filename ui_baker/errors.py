"""Capture error taxonomy.

Every error carries the same structured fields as a tool failure report:
which strategy failed, what it was doing, why, and what to try next.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class BakeError(Exception):
    """Structured capture failure."""

    strategy: str
    action: str
    reason: str
    suggestion: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        text = f"[{self.strategy}] {self.action} failed: {self.reason}"
        if self.suggestion:
            text += f". Suggestion: {self.suggestion}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "strategy": self.strategy,
            "action": self.action,
            "reason": self.reason,
            "suggestion": self.suggestion,
            "details": self.details,
        }


class NotFoundError(BakeError):
    """Selector matched nothing, or the target box has zero area."""


class InvalidClipError(BakeError):
    """The computed capture box is degenerate."""


class EngineStartError(BakeError):
    """Chrome could not be launched or no page could be opened."""


class FileMissingError(BakeError, FileNotFoundError):
    """Source document does not exist."""


class AggregateStrategyError(Exception):
    """Every strategy in one Smart Generation run failed."""

    def __init__(self, node_id: str, messages: list[str]):
        self.node_id = node_id
        self.messages = list(messages)
        joined = " | ".join(self.messages)
        super().__init__(f"Smart generation failed for node {node_id}. {joined}".strip())

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "nodeId": self.node_id, "messages": self.messages, "reason": str(self)}


__all__ = [
    "AggregateStrategyError",
    "BakeError",
    "EngineStartError",
    "FileMissingError",
    "InvalidClipError",
    "NotFoundError",
]
