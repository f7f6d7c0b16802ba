from __future__ import annotations

from typing import Any, Dict, Optional

from lms_analyzer.analyzers.diagnosis import diagnose_capture
from lms_analyzer.analyzers.traffic_extractor import extract_browser, extract_pages, extract_traffic_entries
from lms_analyzer.analyzers.traffic_metrics import (
    basic_stats,
    browser_info,
    content_type_analysis,
    cookie_analysis,
    detect_auth_flow,
    domain_analysis,
    find_errors,
    network_health,
    security_analysis,
    size_analysis,
    status_code_analysis,
    timing_analysis,
)
from lms_analyzer.models.documents import ParsedDocument
from lms_analyzer.models.report import to_jsonable
from lms_analyzer.utils.settings_schema import HarSettings

DOMAIN_LIMIT = 20
CONTENT_TYPE_LIMIT = 15


def build_capture_report(doc: ParsedDocument, har_settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Traffic statistics plus a root-cause diagnosis for one HAR capture.

    A capture that failed to parse still yields a report: every section is
    computed over zero entries and ``parse_errors`` says why.
    """
    conf = HarSettings.model_validate(har_settings or {})
    entries = extract_traffic_entries(doc)
    pages = extract_pages(doc)
    hosts = conf.telemetry_hosts

    diagnosis = diagnose_capture(
        entries,
        pages,
        telemetry_hosts=hosts,
        first_party_top_n=conf.first_party_top_n,
        large_response_bytes=conf.large_response_bytes,
        large_response_samples=conf.large_response_samples,
        third_party_samples=conf.third_party_samples,
        in_progress_markers=conf.in_progress_markers,
    )
    return {
        "kind": "capture",
        "version": doc.format_version.value,
        "well_formed": doc.well_formed,
        "parse_errors": to_jsonable(doc.parse_errors),
        "basic_stats": basic_stats(entries, pages),
        "browser_info": browser_info(entries, extract_browser(doc)),
        "status_codes": status_code_analysis(entries, hosts),
        "domains": domain_analysis(entries, DOMAIN_LIMIT),
        "content_types": content_type_analysis(entries)[:CONTENT_TYPE_LIMIT],
        "size": size_analysis(entries),
        "timing": timing_analysis(entries, conf.slowest_requests),
        "auth_flow": detect_auth_flow(entries),
        "errors": find_errors(entries, hosts),
        "cookies": cookie_analysis(entries),
        "security": security_analysis(entries),
        "network_health": network_health(entries, hosts),
        "diagnosis": to_jsonable(diagnosis),
    }
