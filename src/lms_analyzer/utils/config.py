from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from lms_analyzer.utils.settings_schema import validate_settings


def load_settings(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Read YAML settings, apply environment overrides and fill in defaults.

    A missing ``path`` yields the built-in defaults; an explicit path that does
    not exist raises ``FileNotFoundError``.
    """
    settings: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        with path.open("r", encoding="utf-8") as handle:
            settings = yaml.safe_load(handle) or {}
    artifacts_dir = os.environ.get("LMS_ANALYZER_ARTIFACTS_DIR")
    if artifacts_dir:
        settings.setdefault("analysis", {})["artifacts_dir"] = artifacts_dir
    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        telemetry = settings.setdefault("telemetry", {})
        if not telemetry.get("otlp_endpoint"):
            telemetry["otlp_endpoint"] = endpoint
    return validate_settings(settings)
