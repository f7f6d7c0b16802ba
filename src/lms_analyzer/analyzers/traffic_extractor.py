from __future__ import annotations

import logging
import math
from typing import Any, FrozenSet, Iterable, List, Optional
from urllib.parse import urlsplit

from lms_analyzer.models.documents import ParsedDocument
from lms_analyzer.models.entities import Header, PageRecord, Timings, TrafficEntry
from lms_analyzer.models.node import Leaf, MapNode, Node, child, children, text

logger = logging.getLogger(__name__)

DEFAULT_TELEMETRY_HOSTS: FrozenSet[str] = frozenset({"sentry.io"})

_MIME_RESOURCE_TYPES = (
    (("html",), "Document"),
    (("javascript", "ecmascript"), "Script"),
    (("css",), "Stylesheet"),
    (("image/",), "Image"),
    (("font/", "woff", "ttf", "otf"), "Font"),
    (("audio/", "video/"), "Media"),
    (("json", "xml"), "XHR/Fetch"),
)


def classify_mime_type(mime_type: Optional[str]) -> str:
    base = base_mime_type(mime_type)
    for markers, resource_type in _MIME_RESOURCE_TYPES:
        if any(marker in base for marker in markers):
            return resource_type
    return "Other"


def base_mime_type(mime_type: Optional[str]) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


def hostname(url: str) -> str:
    """Lower-cased hostname, or an empty string for unparseable URLs."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def is_telemetry_request(url: str, telemetry_hosts: Iterable[str] = DEFAULT_TELEMETRY_HOSTS) -> bool:
    host = hostname(url)
    if not host:
        return False
    for base in telemetry_hosts:
        base = base.lower().strip()
        if not base:
            continue
        if host == base or host.endswith(f".{base}") or f"ingest.{base}" in host:
            return True
    return False


def _scalar(node: Optional[Node]) -> Any:
    return node.value if isinstance(node, Leaf) else None


def _number(node: Optional[Node], default: float) -> float:
    value = _scalar(node)
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _non_negative(node: Optional[Node]) -> float:
    value = _number(node, 0.0)
    return value if value >= 0 else 0.0


def _string(node: Optional[Node]) -> str:
    value = _scalar(node)
    return "" if value is None else str(value)


def _headers(node: Optional[Node]) -> List[Header]:
    headers = []
    for item in children(node, "headers"):
        name = _string(child(item, "name"))
        if name:
            headers.append(Header(name=name, value=_string(child(item, "value"))))
    return headers


def _log(doc: ParsedDocument) -> Optional[Node]:
    log = child(doc.tree, "log")
    return log if isinstance(log, MapNode) else None


def extract_traffic_entries(doc: ParsedDocument) -> List[TrafficEntry]:
    """Normalize every ``log.entries`` record; missing sub-objects become defaults."""
    entries: List[TrafficEntry] = []
    for index, raw in enumerate(children(_log(doc), "entries")):
        if not isinstance(raw, MapNode):
            logger.debug("Skipping non-object HAR entry at index %d", index)
            continue
        request = child(raw, "request")
        response = child(raw, "response")
        content = child(response, "content")
        timings_node = child(raw, "timings")
        timings = Timings(
            dns=_non_negative(child(timings_node, "dns")),
            connect=_non_negative(child(timings_node, "connect")),
            wait=_non_negative(child(timings_node, "wait")),
            receive=_non_negative(child(timings_node, "receive")),
        )
        time = _number(child(raw, "time"), -1.0)
        if time < 0:
            time = timings.total
        url = _string(child(request, "url"))
        mime_type = _string(child(content, "mimeType"))
        response_text = _scalar(child(content, "text"))
        entries.append(TrafficEntry(
            sequence_id=index,
            method=_string(child(request, "method")) or "GET",
            url=url,
            status=max(0, int(_number(child(response, "status"), 0))),
            host=hostname(url),
            status_text=_string(child(response, "statusText")),
            started_date_time=_string(child(raw, "startedDateTime")) or None,
            mime_type=mime_type,
            resource_type=classify_mime_type(mime_type),
            content_size=int(_number(child(content, "size"), -1)),
            transfer_size=int(_number(child(response, "bodySize"), -1)),
            time=time,
            timings=timings,
            request_headers=_headers(request),
            response_headers=_headers(response),
            response_text=None if response_text is None else str(response_text),
        ))
    return entries


def extract_pages(doc: ParsedDocument) -> List[PageRecord]:
    pages = []
    for raw in children(_log(doc), "pages"):
        pages.append(PageRecord(
            id=_string(child(raw, "id")) or None,
            title=text(child(raw, "title")),
            started_date_time=_string(child(raw, "startedDateTime")) or None,
        ))
    return pages


def extract_browser(doc: ParsedDocument) -> dict:
    browser = child(_log(doc), "browser")
    return {
        "name": _string(child(browser, "name")) or None,
        "version": _string(child(browser, "version")) or None,
    }
