import json
from pathlib import Path
from typing import Dict, List

from app.harvester.orchestrator import HarvestOrchestrator
from app.harvester.replay_harness import ReplayConfig, load_snapshot_manifest, run_replay
from tests.fake_surface import FakeGridSurface


def test_load_snapshot_manifest_skips_bad_entries(tmp_path: Path):
    (tmp_path / "snapshots.jsonl").write_text(
        json.dumps({"file": "AL_p0001.html", "page": 1}) + "\n" + json.dumps("skip") + "\n{}\n"
    )

    assert list(load_snapshot_manifest(tmp_path)) == [{"file": "AL_p0001.html", "page": 1}]


def test_replay_reproduces_live_records(tmp_path: Path):
    snapshot_dir = tmp_path / "snapshots"
    surface = FakeGridSurface({"AL": 23, "AK": 4})
    live: List[Dict[str, str]] = []
    orchestrator = HarvestOrchestrator(
        surface,
        live,
        timeout_s=1,
        raise_page_size=False,
        reset_pager=False,
        record_snapshots=True,
        snapshot_dir=snapshot_dir,
    )
    orchestrator.open("https://example.com/search")
    orchestrator.run()

    replayed: List[Dict[str, str]] = []
    summary = run_replay(ReplayConfig(snapshot_dir=snapshot_dir), replayed)

    assert summary["snapshots"] == 4
    assert summary["processed"] == 4
    assert summary["missing"] == 0
    assert summary["records"] == 27
    assert summary["shapes"] == {"linked": 3, "single_page": 1}
    assert replayed == live


def test_replay_counts_missing_snapshot_files(tmp_path: Path):
    (tmp_path / "snapshots.jsonl").write_text(json.dumps({"file": "gone.html", "page": 1}) + "\n")

    summary = run_replay(ReplayConfig(snapshot_dir=tmp_path))

    assert summary["missing"] == 1
    assert summary["processed"] == 0
