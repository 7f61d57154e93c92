"""ui-baker-rules-check: cross-check bake_plan.json against rules_trace.json."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .planner import PLAN_FILE, TRACE_FILE
from .trace import BACKGROUND_STACK_COMPOSITE, PRESERVE_SCENE_UNDERLAY, UNDERLAY_FAINT_BORDER_SUPPRESSED

logger = logging.getLogger("ui_baker.rules.validate")

# Flag -> reason that must accompany it. Reason without the flag is only a warning.
_PAIRED_FLAGS = (
    ("preserveSceneUnderlay", PRESERVE_SCENE_UNDERLAY),
    ("suppressUnderlayFaintBorder", UNDERLAY_FAINT_BORDER_SUPPRESSED),
)


def _label(task: dict[str, Any]) -> str:
    return str(task.get("outputName") or task.get("id") or "?")


def check_tasks(plan: Any, trace: Any) -> tuple[list[str], list[str], int, int]:
    issues: list[str] = []
    warnings: list[str] = []

    tasks = [t for t in plan if isinstance(t, dict) and t.get("type") == "CAPTURE_NODE"] if isinstance(plan, list) else []
    trace_by_node: dict[str, dict[str, Any]] = {}
    for item in trace if isinstance(trace, list) else []:
        if isinstance(item, dict) and item.get("nodeId"):
            trace_by_node[str(item["nodeId"])] = item

    for task in tasks:
        label = _label(task)
        params = task.get("params") or {}
        reasons = params.get("reasons") if isinstance(params.get("reasons"), list) else []
        node_id = str(params.get("nodeId") or task.get("nodeId") or "")
        mode = params.get("mode") or ""

        if not reasons:
            issues.append(f"Task {label}: reasons is empty.")
        if params.get("hideOwnText") and "hide-own-direct-text" not in reasons:
            issues.append(f"Task {label}: hideOwnText=true but missing reason hide-own-direct-text.")

        for flag, reason in _PAIRED_FLAGS:
            if params.get(flag) and reason not in reasons:
                issues.append(f"Task {label}: {flag}=true but missing reason {reason}.")
            if not params.get(flag) and reason in reasons:
                warnings.append(f"Task {label}: reason {reason} exists but param {flag} is false.")
        if params.get("suppressUnderlayFaintBorder") and not params.get("preserveSceneUnderlay"):
            issues.append(f"Task {label}: suppressUnderlayFaintBorder=true requires preserveSceneUnderlay=true.")

        if params.get("ancestorRotationContext") and "ancestor-rotation-context" not in reasons:
            issues.append(f"Task {label}: ancestorRotationContext=true but missing reason ancestor-rotation-context.")

        if mode == "backgroundStack" and BACKGROUND_STACK_COMPOSITE not in reasons:
            issues.append(f"Task {label}: backgroundStack mode missing reason {BACKGROUND_STACK_COMPOSITE}.")

        entry = trace_by_node.get(node_id)
        if entry is None:
            issues.append(f"Task {label}: missing node trace for {node_id}.")
            continue
        for flag, _ in _PAIRED_FLAGS:
            task_flag = bool(params.get(flag))
            trace_flag = bool(entry.get(flag))
            if task_flag != trace_flag:
                issues.append(
                    f"Task {label}: trace {flag} mismatch (task={str(task_flag).lower()}, trace={str(trace_flag).lower()})."
                )

    return issues, warnings, len(tasks), len(trace_by_node)


def validate_rules_trace(debug_dir: str | Path) -> tuple[list[str], list[str]]:
    """Load both audit files from ``debug_dir`` and return (issues, warnings)."""
    base = Path(debug_dir)
    plan_path = base / PLAN_FILE
    trace_path = base / TRACE_FILE
    missing = [f"missing: {p}" for p in (plan_path, trace_path) if not p.is_file()]
    if missing:
        return missing, []
    plan = json.loads(plan_path.read_text(encoding="utf-8"))
    trace = json.loads(trace_path.read_text(encoding="utf-8"))
    issues, warnings, _, _ = check_tasks(plan, trace)
    return issues, warnings


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s", stream=sys.stderr)
    parser = argparse.ArgumentParser(prog="ui-baker-rules-check", description=__doc__)
    parser.add_argument("debug_dir", nargs="?", default=str(Path.cwd() / "output" / "debug"))
    args = parser.parse_args(argv)

    debug_dir = Path(args.debug_dir).expanduser().resolve()
    plan_path = debug_dir / PLAN_FILE
    trace_path = debug_dir / TRACE_FILE
    for path in (plan_path, trace_path):
        if not path.is_file():
            sys.stderr.write(f"[rules-check] missing: {path}\n")
            return 1

    try:
        plan = json.loads(plan_path.read_text(encoding="utf-8"))
        trace = json.loads(trace_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        sys.stderr.write(f"[rules-check] unreadable audit file: {exc}\n")
        return 1

    issues, warnings, checked, traced = check_tasks(plan, trace)
    if issues:
        sys.stderr.write(f"[rules-check] failed. issues={len(issues)}\n")
        for issue in issues:
            sys.stderr.write(f"- {issue}\n")
        return 1
    if warnings:
        logger.warning("[rules-check] warnings=%d", len(warnings))
        for warning in warnings:
            logger.warning("- %s", warning)
    sys.stdout.write(f"[rules-check] ok. checked={checked} tasks, trace={traced} nodes.\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
