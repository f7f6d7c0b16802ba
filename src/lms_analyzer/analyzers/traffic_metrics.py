from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from lms_analyzer.analyzers.domain_ranker import rank_domains
from lms_analyzer.analyzers.traffic_extractor import (
    DEFAULT_TELEMETRY_HOSTS,
    base_mime_type,
    is_telemetry_request,
)
from lms_analyzer.models.entities import PageRecord, TrafficEntry

AUTH_KEYWORDS = ("oauth", "saml", "login", "auth", "sso", "token", "callback")

AUTH_TYPE_MARKERS = (
    ("oauth", "OAuth 2.0"),
    ("saml", "SAML 2.0"),
    ("openid", "OpenID Connect"),
    ("duo", "Duo 2FA"),
)

SECURITY_HEADERS = {
    "x-frame-options": "x_frame_options",
    "content-security-policy": "content_security_policy",
    "content-security-policy-report-only": "content_security_policy",
    "strict-transport-security": "strict_transport_security",
    "x-content-type-options": "x_content_type_options",
}

DEFAULT_SLOWEST_N = 10


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def basic_stats(entries: List[TrafficEntry], pages: List[PageRecord]) -> Dict[str, Any]:
    duration = 0.0
    if len(pages) > 1:
        start = _parse_timestamp(pages[0].started_date_time)
        end = _parse_timestamp(pages[-1].started_date_time)
        if start is not None and end is not None:
            try:
                duration = (end - start).total_seconds()
            except TypeError:
                # naive and aware timestamps mixed
                duration = 0.0
    return {
        "total_requests": len(entries),
        "total_pages": len(pages),
        "start_time": pages[0].started_date_time if pages else None,
        "duration": duration,
    }


def status_category(status: int) -> str:
    if status == 0:
        return "Failed"
    if status < 300:
        return "Success"
    if status < 400:
        return "Redirect"
    if status < 500:
        return "Client Error"
    return "Server Error"


def status_code_analysis(
    entries: List[TrafficEntry],
    telemetry_hosts: Iterable[str] = DEFAULT_TELEMETRY_HOSTS,
) -> List[Dict[str, Any]]:
    telemetry_hosts = list(telemetry_hosts)
    counts: Dict[int, int] = {}
    for entry in entries:
        if is_telemetry_request(entry.url, telemetry_hosts):
            continue
        counts[entry.status] = counts.get(entry.status, 0) + 1
    return [
        {"status": status, "count": count, "category": status_category(status)}
        for status, count in sorted(counts.items())
    ]


def content_type_analysis(entries: List[TrafficEntry]) -> List[Dict[str, Any]]:
    counts: Dict[str, int] = {}
    for entry in entries:
        mime = base_mime_type(entry.mime_type) or "unknown"
        counts[mime] = counts.get(mime, 0) + 1
    result = [{"type": mime, "count": count} for mime, count in counts.items()]
    result.sort(key=lambda item: item["count"], reverse=True)
    return result


def size_analysis(entries: List[TrafficEntry]) -> Dict[str, Any]:
    total_content = 0
    total_transfer = 0
    by_type: Dict[str, Dict[str, int]] = {}
    for entry in entries:
        content_size = max(entry.content_size, 0)
        total_content += content_size
        total_transfer += max(entry.transfer_size, 0)
        mime = base_mime_type(entry.mime_type) or "unknown"
        bucket = by_type.setdefault(mime, {"size": 0, "count": 0})
        bucket["size"] += content_size
        bucket["count"] += 1
    rows = [
        {"type": mime, "size": data["size"], "size_kb": round(data["size"] / 1024, 2), "count": data["count"]}
        for mime, data in by_type.items()
    ]
    rows.sort(key=lambda item: item["size"], reverse=True)
    return {
        "total_content_size": total_content,
        "total_transfer_size": total_transfer,
        "total_content_size_mb": round(total_content / 1024 / 1024, 2),
        "total_transfer_size_mb": round(total_transfer / 1024 / 1024, 2),
        "by_type": rows,
    }


def timing_analysis(entries: List[TrafficEntry], limit: int = DEFAULT_SLOWEST_N) -> List[Dict[str, Any]]:
    rows = [
        {
            "url": entry.url,
            "time": entry.time,
            "dns": entry.timings.dns,
            "connect": entry.timings.connect,
            "wait": entry.timings.wait,
            "receive": entry.timings.receive,
        }
        for entry in entries
    ]
    rows.sort(key=lambda item: item["time"], reverse=True)
    return rows[:max(limit, 0)]


def is_auth_url(url: str) -> bool:
    lowered = url.lower()
    return any(keyword in lowered for keyword in AUTH_KEYWORDS)


def detect_auth_flow(entries: List[TrafficEntry]) -> Dict[str, Any]:
    auth_entries = [entry for entry in entries if is_auth_url(entry.url)]
    joined = " ".join(entry.url.lower() for entry in auth_entries)
    auth_types = [label for marker, label in AUTH_TYPE_MARKERS if marker in joined]
    return {
        "detected": bool(auth_entries),
        "request_count": len(auth_entries),
        "requests": [
            {
                "url": entry.url,
                "method": entry.method,
                "status": entry.status,
                "time": entry.started_date_time,
            }
            for entry in auth_entries
        ],
        "type": auth_types or ["Unknown"],
    }


def find_errors(
    entries: List[TrafficEntry],
    telemetry_hosts: Iterable[str] = DEFAULT_TELEMETRY_HOSTS,
) -> List[Dict[str, Any]]:
    """Responses with status >= 400, telemetry calls excluded."""
    telemetry_hosts = list(telemetry_hosts)
    return [
        {
            "url": entry.url,
            "method": entry.method,
            "status": entry.status,
            "status_text": entry.status_text,
            "time": entry.started_date_time,
            "response_body": entry.response_text or None,
        }
        for entry in entries
        if entry.status >= 400 and not is_telemetry_request(entry.url, telemetry_hosts)
    ]


def cookie_analysis(entries: List[TrafficEntry]) -> Dict[str, Any]:
    by_domain: Dict[str, int] = {}
    total = 0
    for entry in entries:
        count = len(entry.response_header_values("set-cookie"))
        if count and entry.host:
            by_domain[entry.host] = by_domain.get(entry.host, 0) + count
            total += count
    rows = [{"domain": domain, "count": count} for domain, count in by_domain.items()]
    rows.sort(key=lambda item: item["count"], reverse=True)
    return {"total_cookies": total, "by_domain": rows}


def security_analysis(entries: List[TrafficEntry]) -> Dict[str, int]:
    counts = {key: 0 for key in dict.fromkeys(SECURITY_HEADERS.values())}
    for entry in entries:
        for header in entry.response_headers:
            key = SECURITY_HEADERS.get(header.name.lower())
            if key:
                counts[key] += 1
    return counts


def parse_user_agent(user_agent: str) -> Dict[str, str]:
    browser_name = "Unknown"
    browser_version = "Unknown"
    os_name = "Unknown"
    os_version = "Unknown"
    device_type = "Desktop"

    if re.search(r"Mobile|Android|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", user_agent, re.I):
        device_type = "Tablet" if re.search(r"iPad|Android(?!.*Mobile)", user_agent, re.I) else "Mobile"

    windows = re.search(r"Windows NT (10\.0|6\.3|6\.2|6\.1)", user_agent, re.I)
    if windows:
        os_name = "Windows"
        os_version = {"10.0": "10/11", "6.3": "8.1", "6.2": "8", "6.1": "7"}[windows.group(1)]
    elif re.search(r"Mac OS X ([\d_]+)", user_agent, re.I):
        os_name = "macOS"
        os_version = re.search(r"Mac OS X ([\d_]+)", user_agent, re.I).group(1).replace("_", ".")
    elif re.search(r"Android ([\d.]+)", user_agent, re.I):
        os_name = "Android"
        os_version = re.search(r"Android ([\d.]+)", user_agent, re.I).group(1)
    elif re.search(r"iPhone OS ([\d_]+)", user_agent, re.I):
        os_name = "iOS"
        os_version = re.search(r"iPhone OS ([\d_]+)", user_agent, re.I).group(1).replace("_", ".")
    elif re.search(r"iPad.*OS ([\d_]+)", user_agent, re.I):
        os_name = "iPadOS"
        os_version = re.search(r"OS ([\d_]+)", user_agent, re.I).group(1).replace("_", ".")
    elif re.search(r"CrOS", user_agent, re.I):
        os_name = "Chrome OS"
    elif re.search(r"Linux", user_agent, re.I):
        os_name = "Linux"

    # more specific browsers first
    match = re.search(r"Edg/([\d.]+)", user_agent, re.I)
    if match:
        browser_name, browser_version = "Microsoft Edge", match.group(1)
    elif re.search(r"(?:Opera|OPR)/([\d.]+)", user_agent, re.I):
        browser_name = "Opera"
        browser_version = re.search(r"(?:Opera|OPR)/([\d.]+)", user_agent, re.I).group(1)
    elif re.search(r"Chrome/([\d.]+)", user_agent, re.I):
        browser_name = "Google Chrome"
        browser_version = re.search(r"Chrome/([\d.]+)", user_agent, re.I).group(1)
    elif re.search(r"Firefox/([\d.]+)", user_agent, re.I):
        browser_name = "Mozilla Firefox"
        browser_version = re.search(r"Firefox/([\d.]+)", user_agent, re.I).group(1)
    elif re.search(r"Safari/", user_agent, re.I):
        browser_name = "Safari"
        version = re.search(r"Version/([\d.]+)", user_agent, re.I)
        if version:
            browser_version = version.group(1)
    elif re.search(r"MSIE ([\d.]+)|Trident.*rv:([\d.]+)", user_agent, re.I):
        browser_name = "Internet Explorer"
        browser_version = re.search(r"(?:MSIE |rv:)([\d.]+)", user_agent, re.I).group(1)

    return {
        "browser_name": browser_name,
        "browser_version": browser_version,
        "os_name": os_name,
        "os_version": os_version,
        "device_type": device_type,
    }


def browser_info(entries: List[TrafficEntry], har_browser: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Browser, OS and device from the first User-Agent header, falling back to ``log.browser``."""
    har_browser = har_browser or {}
    browser_name = har_browser.get("name") or "Unknown"
    browser_version = har_browser.get("version") or "Unknown"
    os_name = "Unknown"
    os_version = "Unknown"
    device_type = "Desktop"

    user_agent = next(
        (value for value in (entry.request_header("user-agent") for entry in entries) if value),
        None,
    )
    if user_agent:
        parsed = parse_user_agent(user_agent)
        if parsed["browser_name"] != "Unknown":
            browser_name = parsed["browser_name"]
            browser_version = parsed["browser_version"]
        os_name = parsed["os_name"]
        os_version = parsed["os_version"]
        device_type = parsed["device_type"]

    return {
        "user_agent": user_agent,
        "browser_name": browser_name,
        "browser_version": browser_version,
        "os_name": os_name,
        "os_version": os_version,
        "device_type": device_type,
        "full_browser_string": browser_name if browser_version == "Unknown" else f"{browser_name} {browser_version}",
        "full_os_string": os_name if os_version == "Unknown" else f"{os_name} {os_version}",
    }


def network_health(
    entries: List[TrafficEntry],
    telemetry_hosts: Iterable[str] = DEFAULT_TELEMETRY_HOSTS,
) -> Dict[str, Any]:
    """Healthy means every non-telemetry request returned 2xx or 3xx."""
    telemetry_hosts = list(telemetry_hosts)
    application = [entry for entry in entries if not is_telemetry_request(entry.url, telemetry_hosts)]
    failed = [entry for entry in application if entry.status == 0 or entry.status >= 400]
    redirects = [entry for entry in application if 300 <= entry.status < 400]
    healthy = not failed
    if healthy:
        summary = f"All {len(application)} application requests returned 2xx/3xx; network layer is healthy."
    else:
        summary = f"{len(failed)} of {len(application)} application requests failed (4xx/5xx/0)."
    return {
        "total_non_telemetry": len(application),
        "failed_requests": len(failed),
        "redirect_requests": len(redirects),
        "is_healthy": healthy,
        "summary": summary,
    }


def domain_analysis(entries: List[TrafficEntry], limit: int = 20) -> List[Dict[str, Any]]:
    return rank_domains(entries)[:limit]
