"""ui-baker-bake: plan an analysed document and bake every task."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import build_resolution_config
from ..errors import BakeError
from ..http_client import HttpClientError
from ..render_session import RenderSession
from ..rules.planner import Planner
from .baker import PlanBaker, write_captures

logger = logging.getLogger("ui_baker.bake.cli")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ui-baker-bake", description=__doc__)
    parser.add_argument("html_path", help="Document to bake")
    parser.add_argument("--analysis-tree", required=True, help="analysis_tree.json produced for the document")
    parser.add_argument("--output-dir", default="output", help="Images go to <dir>/images, audit files to <dir>/debug")
    parser.add_argument("--width", type=float, default=None)
    parser.add_argument("--height", type=float, default=None)
    parser.add_argument("--base-width", type=float, default=None)
    parser.add_argument("--dpr", type=float, default=None)
    parser.add_argument("--plan-only", action="store_true", help="Write bake_plan.json and rules_trace.json, skip capture")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s", stream=sys.stderr)
    args = _parse_args(argv)
    tree_path = Path(args.analysis_tree).expanduser().resolve()
    if not tree_path.is_file():
        sys.stderr.write(f"Analysis tree not found: {tree_path}\n")
        return 1

    output_dir = Path(args.output_dir).expanduser().resolve()
    resolution = build_resolution_config(args.width, args.height, args.base_width, args.dpr)
    planner = Planner(resolution)
    tasks = planner.plan(json.loads(tree_path.read_text(encoding="utf-8")))
    plan_path, _ = planner.write_plan(output_dir / "debug")
    if args.plan_only:
        sys.stdout.write(json.dumps({"plan": str(plan_path), "tasks": len(tasks)}) + "\n")
        return 0

    session = RenderSession()
    try:
        result = PlanBaker(session, output_dir, resolution).run(args.html_path, tasks)
    except (BakeError, HttpClientError, OSError) as exc:
        logger.debug("bake_failed", exc_info=True)
        sys.stderr.write(f"{type(exc).__name__}: {exc}\n")
        return 1
    finally:
        session.close()

    captures_path = write_captures(result, output_dir / "debug")
    sys.stdout.write(
        json.dumps(
            {
                "plan": str(plan_path),
                "captures": str(captures_path),
                "captured": len(result["nodeCaptures"]),
                "failed": len(result["failures"]),
            }
        )
        + "\n"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
