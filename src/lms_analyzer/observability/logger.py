"""JSONL event stream for analysis runs.

Each run appends one JSON object per line under
``<artifacts>/<analysis_id>/observability/runs/<run_id>.jsonl``. Every event
carries ``ts``, ``event_type`` and ``analysis_id``; stage events add
``stage`` and, on ``stage.end``, a ``status``.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from lms_analyzer.utils.artifact_store import ArtifactStore

RUN_STATUS_OK = "ok"
RUN_STATUS_ERROR = "error"


def events_path(base_root: Path, run_id: Optional[str] = None) -> Path:
    """Event file of one run inside an analysis directory."""
    if run_id:
        return base_root / "observability" / "runs" / f"{run_id}.jsonl"
    return base_root / "observability" / "run.jsonl"


def read_events(path: Path) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    if not path.exists():
        return events
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        try:
            events.append(json.loads(line))
        except json.JSONDecodeError:
            # a run still writing its last line
            continue
    return events


class EventLogger:
    """Append-only event writer bound to one analysis run."""

    def __init__(self, store: ArtifactStore, run_id: Optional[str] = None, enabled: bool = True) -> None:
        self.store = store
        self.run_id = run_id
        self.enabled = enabled
        self.path = events_path(store.base_root, run_id)

    def log(self, event_type: str, **fields: Any) -> None:
        if not self.enabled:
            return
        event: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "event_type": event_type,
            "analysis_id": self.store.analysis_id,
        }
        if self.run_id:
            event["run_id"] = self.run_id
        event.update(fields)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(event, ensure_ascii=True, default=str) + "\n")

    def stage_start(self, stage: str, **fields: Any) -> None:
        self.log("stage.start", stage=stage, **fields)

    def stage_end(self, stage: str, status: str = RUN_STATUS_OK, **fields: Any) -> None:
        self.log("stage.end", stage=stage, status=status, **fields)

    def package_members(self, package_info: Dict[str, Any]) -> None:
        """One event per container member that was dropped from the analysis."""
        for failed in package_info.get("failed_files", []):
            self.log("member.failed", filename=failed.get("filename"), errors=failed.get("errors"))
        for skipped in package_info.get("skipped_members", []):
            self.log("member.skipped", filename=skipped.get("filename"), reason=skipped.get("reason"))

    def run_end(self, error: Optional[BaseException] = None) -> None:
        if error is None:
            self.log("run.end", status=RUN_STATUS_OK)
        else:
            self.log("run.end", status=RUN_STATUS_ERROR, error=str(error))
