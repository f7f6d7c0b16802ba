from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

_ANALYSIS_ID: ContextVar[str | None] = ContextVar("analysis_id", default=None)
_RUN_ID: ContextVar[str | None] = ContextVar("run_id", default=None)
_KIND: ContextVar[str | None] = ContextVar("input_kind", default=None)

_INITIALIZED = False


def init_telemetry(settings: Dict[str, Any]) -> None:
    """Install an OTLP exporter once, if telemetry is enabled and has an endpoint."""
    global _INITIALIZED
    conf = settings.get("telemetry", {}) if settings else {}
    if _INITIALIZED or not conf.get("enabled"):
        return
    endpoint = conf.get("otlp_endpoint")
    if not endpoint:
        logger.info("Telemetry enabled without an OTLP endpoint; spans stay local")
        return
    resource = Resource.create({"service.name": conf.get("service_name", "lms-analyzer")})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint, insecure=conf.get("otlp_insecure", True))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _INITIALIZED = True


def set_run_context(analysis_id: str, kind: str | None = None) -> str:
    run_id = uuid.uuid4().hex
    _ANALYSIS_ID.set(analysis_id)
    _RUN_ID.set(run_id)
    if kind:
        _KIND.set(kind)
    return run_id


@contextmanager
def span(name: str, **attrs: Any):
    tracer = trace.get_tracer("lms_analyzer")
    with tracer.start_as_current_span(name) as current:
        _apply_common_attrs(current)
        for key, value in attrs.items():
            if value is None:
                continue
            current.set_attribute(key, value)
        yield current


def _apply_common_attrs(span_obj) -> None:
    analysis_id = _ANALYSIS_ID.get()
    run_id = _RUN_ID.get()
    kind = _KIND.get()
    if analysis_id:
        span_obj.set_attribute("analysis_id", analysis_id)
    if run_id:
        span_obj.set_attribute("run_id", run_id)
    if kind:
        span_obj.set_attribute("input_kind", kind)
