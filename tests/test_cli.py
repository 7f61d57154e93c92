from __future__ import annotations

import json
from pathlib import Path

import pytest

from ui_baker.bake import cli as bake_cli
from ui_baker.errors import NotFoundError
from ui_baker.repair import cli as repair_cli
from ui_baker.rules.planner import PLAN_FILE, TRACE_FILE
from ui_baker.rules.validate import validate_rules_trace


class StubService:
    instances: list[StubService] = []
    outcome: object = None

    def __init__(self, render_session, assets) -> None:
        self.assets = assets
        self.payloads: list[dict] = []
        self.closed = False
        StubService.instances.append(self)

    def run(self, payload: dict) -> dict:
        self.payloads.append(payload)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return {"nodeId": payload["targetNodeId"], "variants": []}

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def stub_service(monkeypatch: pytest.MonkeyPatch) -> type[StubService]:
    StubService.instances = []
    StubService.outcome = None
    monkeypatch.setattr(repair_cli, "RepairService", StubService)
    monkeypatch.setattr(repair_cli, "RenderSession", lambda: object())
    return StubService


def _manifest(tmp_path: Path) -> Path:
    path = tmp_path / "manifest.json"
    path.write_text(json.dumps({"targetNodeId": "n1", "htmlPath": "a.html"}), encoding="utf-8")
    return path


def test_repair_cli_prints_result(tmp_path: Path, stub_service, capsys: pytest.CaptureFixture[str]) -> None:
    assert repair_cli.main(["--manifest", str(_manifest(tmp_path)), "--workspace-root", str(tmp_path)]) == 0
    assert json.loads(capsys.readouterr().out) == {"nodeId": "n1", "variants": []}
    service = stub_service.instances[0]
    assert service.closed is True
    assert service.assets.workspace_root == tmp_path.resolve()


def test_repair_cli_reports_failures(tmp_path: Path, stub_service, capsys: pytest.CaptureFixture[str]) -> None:
    assert repair_cli.main([]) == 1
    assert "Missing --manifest" in capsys.readouterr().err
    assert repair_cli.main([str(tmp_path / "nope.json")]) == 1
    assert "Manifest file not found" in capsys.readouterr().err

    stub_service.outcome = NotFoundError(strategy="RepairService", action="locate node", reason="gone")
    assert repair_cli.main([str(_manifest(tmp_path))]) == 1
    assert "NotFoundError: [RepairService] locate node failed: gone" in capsys.readouterr().err
    assert stub_service.instances[-1].closed is True


def test_bake_cli_plan_only(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    tree = {
        "id": "root",
        "type": "Container",
        "tagName": "BODY",
        "rect": {"x": 0, "y": 0, "width": 750, "height": 1624},
        "styles": {"backgroundColor": "rgb(0, 0, 0)"},
        "visual": {"hasVisual": True},
        "children": [{"id": "logo", "type": "Image", "tagName": "IMG", "rect": {"width": 80, "height": 80}}],
    }
    tree_path = tmp_path / "analysis_tree.json"
    tree_path.write_text(json.dumps(tree), encoding="utf-8")
    out = tmp_path / "out"

    code = bake_cli.main(["page.html", "--analysis-tree", str(tree_path), "--output-dir", str(out), "--plan-only"])
    assert code == 0
    assert json.loads(capsys.readouterr().out)["tasks"] == 3
    assert (out / "debug" / PLAN_FILE).is_file()
    assert (out / "debug" / TRACE_FILE).is_file()
    assert validate_rules_trace(out / "debug") == ([], [])


def test_bake_cli_missing_tree(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert bake_cli.main(["page.html", "--analysis-tree", str(tmp_path / "missing.json")]) == 1
    assert "Analysis tree not found" in capsys.readouterr().err
