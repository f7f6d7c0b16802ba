from __future__ import annotations

import argparse
import logging
from pathlib import Path

from lms_analyzer.analysis import KINDS, KIND_AUTO
from lms_analyzer.errors import AnalyzerError
from lms_analyzer.orchestrator import Orchestrator
from lms_analyzer.utils.config import load_settings

logger = logging.getLogger("batch_analyze")


def main() -> None:
    parser = argparse.ArgumentParser(description="Batch QTI / HAR analysis")
    parser.add_argument("--input-list", required=True, help="Path to file with one input path per line")
    parser.add_argument("--kind", choices=list(KINDS), default=KIND_AUTO)
    parser.add_argument("--settings", default="config/settings.yaml")
    parser.add_argument("--stop-on-error", action="store_true", help="Abort on the first failed input")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = load_settings(args.settings)
    orchestrator = Orchestrator(settings)

    failures = 0
    for line in Path(args.input_list).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            report = orchestrator.run(input_path=line, kind=args.kind)
        except (AnalyzerError, FileNotFoundError) as exc:
            if args.stop_on_error:
                raise
            failures += 1
            logger.error("Failed to analyze %s: %s", line, exc)
            continue
        logger.info("%s -> %s", line, report.get("analysis_id"))
    if failures:
        raise SystemExit(f"{failures} input(s) failed")


if __name__ == "__main__":
    main()
