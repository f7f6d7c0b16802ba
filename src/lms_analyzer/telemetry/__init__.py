from __future__ import annotations

from lms_analyzer.telemetry.tracing import (
    init_telemetry,
    set_run_context,
    span,
)

__all__ = ["init_telemetry", "set_run_context", "span"]
