from __future__ import annotations

import csv
import io
import os
import threading
import time
from typing import Any, Dict, Generator

from flask import Flask, Response, jsonify, request, send_file

from app.harvester import config
from app.harvester.config_validation import validate_runtime_config
from app.harvester.export_excel import export_records_to_excel
from app.harvester.healthcheck import run_health_checks
from app.harvester.records import load_records
from app.harvester.run import run_harvest
from app.harvester.utils import ensure_dirs, get_current_log_path, load_json_file, log_line

app = Flask(__name__)
app.secret_key = os.environ.get("SECRET_KEY", "dev-secret-change-me")

# One crawl at a time: the search UI is stateful per session and the
# harvester drives a single browser.
_HARVEST_LOCK = threading.Lock()

ensure_dirs()


def _parse_bool(raw: Any) -> bool | None:
    if raw is None or raw == "":
        return None
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _tail_log_generator() -> Generator[str, None, None]:
    """Yield Server-Sent Event messages for appended log lines."""

    ensure_dirs()
    current_path = get_current_log_path()
    current_path.parent.mkdir(parents=True, exist_ok=True)
    current_path.touch(exist_ok=True)

    handle = current_path.open("r", encoding="utf-8", errors="ignore")
    handle.seek(0, os.SEEK_END)

    try:
        while True:
            latest_path = get_current_log_path()
            if latest_path != current_path:
                handle.close()
                current_path = latest_path
                current_path.parent.mkdir(parents=True, exist_ok=True)
                current_path.touch(exist_ok=True)
                handle = current_path.open("r", encoding="utf-8", errors="ignore")
                handle.seek(0, os.SEEK_END)

            line = handle.readline()
            if line:
                yield f"data: {line.rstrip()}\n\n"
            else:
                time.sleep(1)
                yield ": heartbeat\n\n"
    finally:
        handle.close()


def _records_to_csv(records: list[dict[str, str]]) -> str:
    """Serialise harvested records to CSV; the header is the union of all keys."""

    fieldnames: list[str] = []
    for record in records:
        for key in record:
            if key not in fieldnames:
                fieldnames.append(key)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames, restval="")
    writer.writeheader()
    for record in records:
        writer.writerow(record)
    return output.getvalue()


@app.post("/harvest")
def start_harvest() -> Response:
    """Start a harvest run in a background thread."""

    payload: Dict[str, Any] = request.get_json(silent=True) or request.form.to_dict()
    search_url = (payload.get("search_url") or config.SEARCH_URL).strip()
    try:
        max_filters = int(payload.get("max_filters", config.MAX_FILTERS))
    except (TypeError, ValueError):
        max_filters = config.MAX_FILTERS
    max_filters = max(0, max_filters)
    only_raw = payload.get("only")
    if isinstance(only_raw, str):
        only = [item.strip() for item in only_raw.split(",") if item.strip()] or None
    else:
        only = only_raw or None
    reset_pager = _parse_bool(payload.get("reset_pager"))

    try:
        validate_runtime_config("ui")
    except ValueError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 400

    if not _HARVEST_LOCK.acquire(blocking=False):
        return jsonify({"ok": False, "error": "a harvest is already running"}), 409

    app.config["LAST_PARAMS"] = {
        "search_url": search_url,
        "max_filters": max_filters,
        "only": only,
        "reset_pager": reset_pager,
    }

    def _run() -> None:
        try:
            with app.app_context():
                summary = run_harvest(
                    search_url=search_url,
                    max_filters=max_filters,
                    only=only,
                    reset_pager=reset_pager,
                    trigger="ui",
                )
                app.config["LAST_SUMMARY"] = summary
        except Exception as exc:  # noqa: BLE001
            log_line(f"Harvest thread failed: {exc}")
        finally:
            _HARVEST_LOCK.release()

    threading.Thread(target=_run, daemon=True).start()
    return jsonify({"ok": True, "params": app.config["LAST_PARAMS"]}), 202


@app.get("/api/runs/latest")
def api_runs_latest() -> Response:
    """Return the summary written by the most recent run."""

    summary = load_json_file(config.SUMMARY_FILE)
    if not isinstance(summary, dict):
        return jsonify({"ok": False, "error": "no runs"}), 404
    return jsonify({"ok": True, "running": _HARVEST_LOCK.locked(), "run": summary})


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration and filesystem."""

    result = run_health_checks(entrypoint="ui")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status


@app.get("/logs/stream")
def logs_stream() -> Response:
    """Stream log updates to the browser using SSE."""

    response = Response(_tail_log_generator(), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response


@app.get("/logs/<path:filename>")
def download_log(filename: str) -> Response:
    """Serve a log file from the logs directory."""

    target = (config.LOG_DIR / filename).resolve()
    root = config.LOG_DIR.resolve()
    if not str(target).startswith(str(root)):
        return Response("Invalid path", status=400)
    if not target.exists() or not target.is_file():
        return Response("File not found", status=404)
    return send_file(target, as_attachment=True, download_name=target.name)


@app.get("/api/exports/latest.xlsx")
def api_export_latest_xlsx() -> Response:
    try:
        path = export_records_to_excel()
    except FileNotFoundError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 404
    return send_file(path, as_attachment=True, download_name=path.name)


@app.get("/export/csv")
def export_csv() -> Response:
    """Provide the harvested records as a downloadable CSV file."""

    records = load_records()
    return Response(
        _records_to_csv(records),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=records.csv"},
    )


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8080)
