from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

OPACITY_DECOUPLED = "opacity-decoupled"
LOW_ALPHA_CONTEXT_CAPTURE = "low-alpha-context-capture"
BACKGROUND_STACK_COMPOSITE = "background-stack-composite"
UNDERLAY_FAINT_BORDER_SUPPRESSED = "underlay-faint-border-suppressed"

# Reason emitted on the task when low-alpha context capture fires.
PRESERVE_SCENE_UNDERLAY = "preserve-scene-underlay"


@dataclass(frozen=True)
class RuleTraceToken:
    rule: str
    node_id: str
    condition: str

    def to_dict(self) -> dict[str, str]:
        return {"rule": self.rule, "nodeId": self.node_id, "condition": self.condition}


@dataclass
class NodeTrace:
    """Per-node audit entry: every token that fired plus the flags it produced."""

    node_id: str
    mode: str = "clone"
    tokens: list[RuleTraceToken] = field(default_factory=list)
    preserve_scene_underlay: bool = False
    suppress_underlay_faint_border: bool = False
    decouple_opacity: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "mode": self.mode,
            "rules": [t.to_dict() for t in self.tokens],
            "preserveSceneUnderlay": self.preserve_scene_underlay,
            "suppressUnderlayFaintBorder": self.suppress_underlay_faint_border,
            "decoupleOpacity": self.decouple_opacity,
        }


class RuleTrace:
    """Append-only trace shared by one planning run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: list[RuleTraceToken] = []
        self._nodes: dict[str, NodeTrace] = {}

    def record(self, rule: str, node_id: str, condition: str) -> RuleTraceToken:
        token = RuleTraceToken(rule=rule, node_id=node_id, condition=condition)
        with self._lock:
            self._tokens.append(token)
        return token

    def record_node(self, entry: NodeTrace) -> None:
        with self._lock:
            self._nodes[entry.node_id] = entry

    @property
    def tokens(self) -> list[RuleTraceToken]:
        with self._lock:
            return list(self._tokens)

    def fired(self, rule: str) -> list[RuleTraceToken]:
        return [t for t in self.tokens if t.rule == rule]

    def to_list(self) -> list[dict[str, Any]]:
        with self._lock:
            return [entry.to_dict() for entry in self._nodes.values()]


__all__ = [
    "BACKGROUND_STACK_COMPOSITE",
    "LOW_ALPHA_CONTEXT_CAPTURE",
    "OPACITY_DECOUPLED",
    "PRESERVE_SCENE_UNDERLAY",
    "UNDERLAY_FAINT_BORDER_SUPPRESSED",
    "NodeTrace",
    "RuleTrace",
    "RuleTraceToken",
]
