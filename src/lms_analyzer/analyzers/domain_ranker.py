from __future__ import annotations

from typing import Any, Dict, Iterable, List, Set

from lms_analyzer.analyzers.traffic_extractor import DEFAULT_TELEMETRY_HOSTS, is_telemetry_request
from lms_analyzer.models.entities import TrafficEntry

DEFAULT_FIRST_PARTY_TOP_N = 2
DEFAULT_LARGE_RESPONSE_BYTES = 100 * 1024


def rank_domains(entries: List[TrafficEntry]) -> List[Dict[str, Any]]:
    """Hosts by request count, most requested first; ties keep first-seen order."""
    counts: Dict[str, int] = {}
    for entry in entries:
        if entry.host:
            counts[entry.host] = counts.get(entry.host, 0) + 1
    ranking = [{"domain": domain, "count": count} for domain, count in counts.items()]
    ranking.sort(key=lambda item: item["count"], reverse=True)
    return ranking


def first_party_hosts(ranking: List[Dict[str, Any]], top_n: int = DEFAULT_FIRST_PARTY_TOP_N) -> Set[str]:
    return {item["domain"] for item in ranking[:max(top_n, 0)]}


def is_script_response(entry: TrafficEntry) -> bool:
    mime = entry.mime_type.lower()
    return "javascript" in mime or "script" in mime


def detect_third_party_scripts(
    entries: List[TrafficEntry],
    first_party: Set[str],
    telemetry_hosts: Iterable[str] = DEFAULT_TELEMETRY_HOSTS,
) -> List[str]:
    telemetry_hosts = list(telemetry_hosts)
    hosts: List[str] = []
    for entry in entries:
        if not entry.host or not is_script_response(entry):
            continue
        if entry.host in first_party or entry.host in hosts:
            continue
        if is_telemetry_request(entry.url, telemetry_hosts):
            continue
        hosts.append(entry.host)
    return hosts


def detect_large_responses(
    entries: List[TrafficEntry],
    threshold: int = DEFAULT_LARGE_RESPONSE_BYTES,
) -> List[Dict[str, Any]]:
    """Text or HTML responses above ``threshold`` bytes, largest first."""
    large = []
    for entry in entries:
        mime = entry.mime_type.lower()
        if entry.content_size > threshold and ("html" in mime or "text" in mime):
            large.append({
                "url": entry.url,
                "size": entry.content_size,
                "size_kb": round(entry.content_size / 1024),
            })
    large.sort(key=lambda item: item["size"], reverse=True)
    return large
