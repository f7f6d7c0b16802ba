from __future__ import annotations

import asyncio
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from lms_analyzer.analysis import KIND_AUTO, KINDS
from lms_analyzer.errors import AnalyzerError
from lms_analyzer.observability.logger import events_path, read_events
from lms_analyzer.orchestrator import REPORT_PATH, Orchestrator
from lms_analyzer.utils.artifact_store import ArtifactStore
from lms_analyzer.utils.config import load_settings

DEFAULT_SETTINGS_PATH = Path("config/settings.yaml")

app = FastAPI(title="LMS Analyzer")


class AnalyzeRequest(BaseModel):
    path: str = Field(..., description="Filesystem path to a QTI package, QTI XML file or HAR capture")
    kind: str = Field(KIND_AUTO, description="Input kind; detected from content by default")


def _settings() -> Dict[str, Any]:
    path = os.environ.get("LMS_ANALYZER_SETTINGS")
    if path:
        return load_settings(path)
    if DEFAULT_SETTINGS_PATH.exists():
        return load_settings(DEFAULT_SETTINGS_PATH)
    return load_settings(None)


def _artifacts_dir(settings: Dict[str, Any]) -> Path:
    return Path(settings["analysis"]["artifacts_dir"])


def _check_kind(kind: str) -> None:
    if kind not in KINDS:
        raise HTTPException(status_code=400, detail=f"kind must be one of {', '.join(KINDS)}")


def _parse_ts(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None


def _stage_summary(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    stages: Dict[str, Dict[str, Any]] = {}
    for event in events:
        stage = event.get("stage")
        if not stage:
            continue
        data = stages.setdefault(stage, {"stage": stage})
        if event.get("event_type") == "stage.start":
            data["start_ts"] = event.get("ts")
        if event.get("event_type") == "stage.end":
            data["end_ts"] = event.get("ts")
            data["status"] = event.get("status", "ok")
    results = []
    for data in stages.values():
        start = _parse_ts(data.get("start_ts"))
        end = _parse_ts(data.get("end_ts"))
        duration = (end - start).total_seconds() if start and end else None
        results.append({**data, "duration_sec": duration})
    return sorted(results, key=lambda x: x.get("start_ts") or "")


def _latest_run_id(settings: Dict[str, Any], analysis_id: str) -> Optional[str]:
    runs = ArtifactStore(_artifacts_dir(settings), analysis_id).run_ids()
    return runs[-1] if runs else None


def _run(settings: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
    try:
        return Orchestrator(settings).run(**kwargs)
    except AnalyzerError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.post("/api/analyze")
def analyze_path(payload: AnalyzeRequest):
    _check_kind(payload.kind)
    path = Path(payload.path)
    if not path.is_file():
        raise HTTPException(status_code=400, detail=f"Input path not found: {path}")
    return _run(_settings(), input_path=path, kind=payload.kind)


@app.post("/api/analyze/upload")
async def analyze_upload(request: Request, name: Optional[str] = None, kind: str = KIND_AUTO):
    _check_kind(kind)
    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="Request body is empty")
    settings = _settings()
    return await asyncio.to_thread(_run, settings, content=body, name=name, kind=kind)


@app.get("/api/reports/{analysis_id}")
def get_report(analysis_id: str, run_id: Optional[str] = None):
    settings = _settings()
    run_id = run_id or _latest_run_id(settings, analysis_id)
    if not run_id:
        raise HTTPException(status_code=404, detail="Report not found")
    store = ArtifactStore(_artifacts_dir(settings), analysis_id, run_id=run_id)
    if not store.path(REPORT_PATH).exists():
        raise HTTPException(status_code=404, detail="Report not found")
    return store.read_json(REPORT_PATH)


@app.get("/api/runs/{analysis_id}")
def get_run(analysis_id: str, run_id: Optional[str] = None):
    settings = _settings()
    run_id = run_id or _latest_run_id(settings, analysis_id)
    if not run_id:
        raise HTTPException(status_code=404, detail="Run not found")
    store = ArtifactStore(_artifacts_dir(settings), analysis_id, run_id=run_id)
    events = read_events(events_path(store.base_root, run_id))
    end = next((e for e in reversed(events) if e.get("event_type") == "run.end"), None)
    return {
        "analysis_id": analysis_id,
        "run_id": run_id,
        "end_status": (end or {}).get("status"),
        "stages": _stage_summary(events),
        "events": events,
    }
