from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

from lms_analyzer.analysis import KINDS, KIND_AUTO
from lms_analyzer.errors import AnalyzerError
from lms_analyzer.orchestrator import Orchestrator
from lms_analyzer.utils.config import load_settings

DEFAULT_SETTINGS = "config/settings.yaml"


def _apply_overrides(settings: Dict[str, Any], args: argparse.Namespace) -> None:
    analysis = settings.setdefault("analysis", {})
    if args.artifacts_dir:
        analysis["artifacts_dir"] = args.artifacts_dir
    if args.catalog:
        analysis["capability_catalog"] = args.catalog


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="LMS assessment package and HAR capture analyzer")
    parser.add_argument("--input", required=True, help="Path to a QTI zip/XML file or a HAR capture")
    parser.add_argument("--settings", default=DEFAULT_SETTINGS, help="Settings YAML path")
    parser.add_argument(
        "--kind",
        choices=list(KINDS),
        default=KIND_AUTO,
        help="Input kind (default: detect from content)",
    )
    parser.add_argument("--artifacts-dir", help="Override analysis.artifacts_dir")
    parser.add_argument("--catalog", help="Capability catalog YAML path")
    parser.add_argument("--print", dest="print_report", action="store_true", help="Print the report JSON to stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings_path = args.settings if Path(args.settings).exists() or args.settings != DEFAULT_SETTINGS else None
    settings = load_settings(settings_path)
    _apply_overrides(settings, args)

    orchestrator = Orchestrator(settings)
    try:
        report = orchestrator.run(input_path=args.input, kind=args.kind)
    except (AnalyzerError, FileNotFoundError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if args.print_report:
        print(json.dumps(report, indent=2))
    else:
        print(f"Report written for {report.get('analysis_id')} (run {report.get('run_id')})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
