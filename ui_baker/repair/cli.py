"""ui-baker-repair: run one repair manifest and print the result JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from ..render_session import RenderSession
from .assets import AssetAllocator
from .service import RepairService

logger = logging.getLogger("ui_baker.repair.cli")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ui-baker-repair", description=__doc__)
    parser.add_argument("manifest_path", nargs="?", default="", help="Repair manifest (JSON)")
    parser.add_argument("--manifest", "--request", dest="manifest", default="", help="Repair manifest (JSON)")
    parser.add_argument("--workspace-root", default="", help="Root that relative asset paths are computed from")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    args = _parse_args(argv)
    raw_path = args.manifest or args.manifest_path
    if not raw_path:
        sys.stderr.write("Missing --manifest <path>.\n")
        return 1

    manifest = Path(raw_path).expanduser().resolve()
    if not manifest.is_file():
        sys.stderr.write(f"Manifest file not found: {manifest}\n")
        return 1

    assets = AssetAllocator(workspace_root=args.workspace_root or None)
    service = RepairService(RenderSession(), assets)
    try:
        payload = json.loads(manifest.read_text(encoding="utf-8"))
        result = service.run(payload)
    except Exception as exc:  # noqa: BLE001
        logger.debug("repair_failed", exc_info=True)
        sys.stderr.write(f"{type(exc).__name__}: {exc}\n")
        return 1
    finally:
        service.close()

    sys.stdout.write(json.dumps(result, ensure_ascii=False))
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
