from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from lms_analyzer.analysis import KIND_AUTO, KIND_CAPTURE, analyze, detect_kind, load_catalog
from lms_analyzer.models.documents import RawArchive
from lms_analyzer.observability.logger import EventLogger
from lms_analyzer.telemetry import init_telemetry, set_run_context, span
from lms_analyzer.utils.artifact_store import ArtifactStore
from lms_analyzer.utils.json_schema import validate_json
from lms_analyzer.utils.settings_schema import validate_settings
from lms_analyzer.utils.source_loader import classify_content, load_source

logger = logging.getLogger(__name__)

REPORT_PATH = "report/report.json"
REPO_ROOT = Path(__file__).resolve().parents[2]

_SCHEMAS = {
    KIND_CAPTURE: "CaptureReport.schema.json",
}
_DEFAULT_SCHEMA = "AssessmentReport.schema.json"


class Orchestrator:
    """Runs one analysis with artifact, event and span bookkeeping around it."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None) -> None:
        self.settings = validate_settings(settings)
        self.catalog = load_catalog(self.settings)
        init_telemetry(self.settings)

    def _schema_path(self, kind: str) -> Path:
        name = _SCHEMAS.get(kind, _DEFAULT_SCHEMA)
        schemas_dir = Path(self.settings["analysis"]["schemas_dir"])
        path = schemas_dir / name
        if not path.exists() and not schemas_dir.is_absolute():
            path = REPO_ROOT / schemas_dir / name
        return path

    def run(
        self,
        input_path: Optional[Union[str, Path]] = None,
        content: Optional[Union[bytes, str]] = None,
        name: Optional[str] = None,
        kind: str = KIND_AUTO,
    ) -> Dict[str, Any]:
        if input_path is None and content is None:
            raise ValueError("input_path or content is required for analysis.")
        archive: RawArchive = load_source(input_path) if input_path is not None else classify_content(content, name)
        if kind == KIND_AUTO:
            kind = detect_kind(archive)

        analysis_id = ArtifactStore.compute_analysis_id(archive.content)
        run_id = set_run_context(analysis_id, kind=kind)
        store = ArtifactStore(self.settings["analysis"]["artifacts_dir"], analysis_id, run_id=run_id)
        store.ensure_dir("report")
        obs_conf = self.settings.get("observability", {})
        event_logger = EventLogger(store, run_id=run_id, enabled=obs_conf.get("enabled", True))
        event_logger.log("run.start", kind=kind, source=archive.name, size=len(archive.content))

        success = False
        try:
            event_logger.stage_start("analyze", kind=kind)
            with span("stage.analyze", stage="analyze", kind=kind):
                report = analyze(archive, self.settings, kind=kind, catalog=self.catalog)
            event_logger.package_members(report.get("package_info") or {})
            event_logger.stage_end("analyze", report_kind=report.get("kind"))

            report = {"analysis_id": analysis_id, "run_id": run_id, "source": archive.name, **report}

            event_logger.stage_start("report")
            with span("stage.report", stage="report"):
                if self.settings["analysis"].get("validate_reports", True):
                    validate_json(report, self._schema_path(kind))
                store.write_json(REPORT_PATH, report)
            event_logger.stage_end("report", ref=store.relpath(REPORT_PATH))
            logger.info("Report written for %s (run %s)", analysis_id, run_id)

            success = True
            return report
        except Exception as exc:
            event_logger.run_end(exc)
            raise
        finally:
            if success:
                event_logger.run_end()
