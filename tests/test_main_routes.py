import importlib
import sys
from pathlib import Path
from typing import Any, Dict

import pytest

from app.harvester import config
from app.harvester.utils import append_json_line, save_json_file
from tests.test_run import _configure_temp_paths


def _reload_main_module():
    if "app.main" in sys.modules:
        del sys.modules["app.main"]
    return importlib.import_module("app.main")


class _DummyThread:
    """Thread stub that runs the target synchronously in tests."""

    def __init__(self, target, daemon: bool = True):
        self._target = target
        self.daemon = daemon

    def start(self) -> None:
        self._target()


def test_harvest_route_starts_ui_run(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    main = _reload_main_module()

    calls: Dict[str, Any] = {}

    def fake_run_harvest(*args, **kwargs):
        calls["kwargs"] = kwargs
        return {"status": "completed", "run_id": "r1"}

    monkeypatch.setattr(main, "run_harvest", fake_run_harvest)
    monkeypatch.setattr(main.threading, "Thread", _DummyThread)

    client = main.app.test_client()
    resp = client.post(
        "/harvest",
        json={"max_filters": "2", "only": "AL, AK", "reset_pager": "true"},
    )

    assert resp.status_code == 202
    assert calls["kwargs"]["trigger"] == "ui"
    assert calls["kwargs"]["max_filters"] == 2
    assert calls["kwargs"]["only"] == ["AL", "AK"]
    assert calls["kwargs"]["reset_pager"] is True
    assert calls["kwargs"]["search_url"] == config.SEARCH_URL
    assert main._HARVEST_LOCK.locked() is False


def test_harvest_route_rejects_concurrent_runs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    main = _reload_main_module()

    main._HARVEST_LOCK.acquire()
    try:
        resp = main.app.test_client().post("/harvest", data={})
    finally:
        main._HARVEST_LOCK.release()

    assert resp.status_code == 409


def test_harvest_route_rejects_bad_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "BACKEND", "lynx")
    main = _reload_main_module()

    resp = main.app.test_client().post("/harvest", data={})

    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False


def test_latest_run_api(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    main = _reload_main_module()
    client = main.app.test_client()

    assert client.get("/api/runs/latest").status_code == 404

    save_json_file(config.SUMMARY_FILE, {"run_id": "r1", "status": "completed", "total_records": 3})
    resp = client.get("/api/runs/latest")

    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["run"]["total_records"] == 3
    assert payload["running"] is False


def test_csv_export_uses_union_of_keys(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    append_json_line(config.RECORDS_FILE, {"Name": "A", "_page": "1"})
    append_json_line(config.RECORDS_FILE, {"Name": "B", "City": "Mobile", "_page": "2"})
    main = _reload_main_module()

    resp = main.app.test_client().get("/export/csv")

    assert resp.status_code == 200
    lines = resp.get_data(as_text=True).splitlines()
    assert lines[0] == "Name,_page,City"
    assert lines[1] == "A,1,"
    assert lines[2] == "B,2,Mobile"


def test_excel_export_without_records_is_404(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    main = _reload_main_module()

    assert main.app.test_client().get("/api/exports/latest.xlsx").status_code == 404


def test_log_download_rejects_traversal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    main = _reload_main_module()
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    (config.LOG_DIR / "harvest_1.log").write_text("hello\n", encoding="utf-8")
    client = main.app.test_client()

    assert client.get("/logs/harvest_1.log").status_code == 200
    assert client.get("/logs/missing.log").status_code == 404
