from __future__ import annotations

import json

from lms_analyzer.analyzers.traffic_extractor import extract_pages, extract_traffic_entries
from lms_analyzer.analyzers.traffic_metrics import (
    basic_stats,
    browser_info,
    content_type_analysis,
    cookie_analysis,
    detect_auth_flow,
    find_errors,
    network_health,
    parse_user_agent,
    security_analysis,
    size_analysis,
    status_category,
    status_code_analysis,
    timing_analysis,
)
from lms_analyzer.parsers.har_parser import parse_har

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _entry(url, status=200, mime="text/html", size=1024, time=10, request_headers=(), response_headers=(), text=None):
    content = {"size": size, "mimeType": mime}
    if text is not None:
        content["text"] = text
    return {
        "startedDateTime": "2024-05-01T10:00:00.000Z",
        "time": time,
        "request": {"method": "GET", "url": url, "headers": [dict(name=n, value=v) for n, v in request_headers]},
        "response": {
            "status": status,
            "statusText": "Unauthorized" if status == 401 else "OK",
            "headers": [dict(name=n, value=v) for n, v in response_headers],
            "content": content,
            "bodySize": size // 2,
        },
        "timings": {"dns": 0, "connect": 0, "wait": time, "receive": 0},
    }


def _doc(*entries, pages=()):
    return parse_har(json.dumps({"log": {"pages": list(pages), "entries": list(entries)}}))


def _entries(*entries):
    return extract_traffic_entries(_doc(*entries))


def test_basic_stats_duration_between_first_and_last_page():
    doc = _doc(
        _entry("https://lms.test/"),
        pages=[
            {"id": "p1", "title": "Home", "startedDateTime": "2024-05-01T10:00:00Z"},
            {"id": "p2", "title": "Quiz", "startedDateTime": "2024-05-01T10:01:30Z"},
        ],
    )
    stats = basic_stats(extract_traffic_entries(doc), extract_pages(doc))
    assert stats == {
        "total_requests": 1,
        "total_pages": 2,
        "start_time": "2024-05-01T10:00:00Z",
        "duration": 90.0,
    }


def test_status_codes_exclude_telemetry():
    entries = _entries(
        _entry("https://lms.test/a"),
        _entry("https://lms.test/b", status=302),
        _entry("https://lms.test/c", status=404),
        _entry("https://o1.ingest.sentry.io/api", status=500),
    )
    assert status_code_analysis(entries) == [
        {"status": 200, "count": 1, "category": "Success"},
        {"status": 302, "count": 1, "category": "Redirect"},
        {"status": 404, "count": 1, "category": "Client Error"},
    ]
    assert status_category(0) == "Failed"
    assert status_category(503) == "Server Error"


def test_content_types_and_sizes():
    entries = _entries(
        _entry("https://lms.test/a", mime="text/html; charset=utf-8", size=2048),
        _entry("https://lms.test/b", mime="text/html", size=1024),
        _entry("https://lms.test/c", mime="application/json", size=512),
    )
    assert content_type_analysis(entries) == [
        {"type": "text/html", "count": 2},
        {"type": "application/json", "count": 1},
    ]
    sizes = size_analysis(entries)
    assert sizes["total_content_size"] == 3584
    assert sizes["total_transfer_size"] == 1792
    assert sizes["by_type"][0] == {"type": "text/html", "size": 3072, "size_kb": 3.0, "count": 2}


def test_timing_lists_slowest_first():
    entries = _entries(
        _entry("https://lms.test/fast", time=5),
        _entry("https://lms.test/slow", time=900),
        _entry("https://lms.test/mid", time=50),
    )
    rows = timing_analysis(entries, limit=2)
    assert [row["url"] for row in rows] == ["https://lms.test/slow", "https://lms.test/mid"]
    assert rows[0]["wait"] == 900


def test_auth_flow_detection():
    entries = _entries(
        _entry("https://lms.test/login/saml"),
        _entry("https://idp.test/oauth2/authorize"),
        _entry("https://lms.test/courses"),
    )
    flow = detect_auth_flow(entries)
    assert flow["detected"]
    assert flow["request_count"] == 2
    assert flow["type"] == ["OAuth 2.0", "SAML 2.0"]
    assert detect_auth_flow(_entries(_entry("https://lms.test/"))) == {
        "detected": False,
        "request_count": 0,
        "requests": [],
        "type": ["Unknown"],
    }


def test_errors_carry_response_body():
    entries = _entries(
        _entry("https://lms.test/api/v1/x", status=401, text='{"error": "nope"}'),
        _entry("https://o1.ingest.sentry.io/api", status=429),
    )
    [error] = find_errors(entries)
    assert error["status"] == 401
    assert error["status_text"] == "Unauthorized"
    assert error["response_body"] == '{"error": "nope"}'


def test_cookies_and_security_headers():
    entries = _entries(
        _entry("https://lms.test/", response_headers=[
            ("Set-Cookie", "a=1"),
            ("Set-Cookie", "b=2"),
            ("Strict-Transport-Security", "max-age=1"),
            ("X-Frame-Options", "SAMEORIGIN"),
        ]),
        _entry("https://cdn.test/", response_headers=[("set-cookie", "c=3"), ("Content-Security-Policy", "default-src 'self'")]),
    )
    cookies = cookie_analysis(entries)
    assert cookies["total_cookies"] == 3
    assert cookies["by_domain"] == [{"domain": "lms.test", "count": 2}, {"domain": "cdn.test", "count": 1}]
    assert security_analysis(entries) == {
        "x_frame_options": 1,
        "content_security_policy": 1,
        "strict_transport_security": 1,
        "x_content_type_options": 0,
    }


def test_user_agent_parsing():
    chrome = parse_user_agent(CHROME_UA)
    assert chrome["browser_name"] == "Google Chrome"
    assert chrome["browser_version"] == "124.0.0.0"
    assert chrome["os_name"] == "Windows"
    assert chrome["os_version"] == "10/11"
    assert chrome["device_type"] == "Desktop"

    opera = parse_user_agent(CHROME_UA + " OPR/109.0.0.0")
    assert opera["browser_name"] == "Opera"

    edge = parse_user_agent(CHROME_UA + " Edg/124.0.2478.80")
    assert edge["browser_name"] == "Microsoft Edge"

    iphone = parse_user_agent(
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
    )
    assert iphone["device_type"] == "Mobile"
    assert iphone["browser_name"] == "Safari"
    assert iphone["browser_version"] == "17.4"


def test_browser_info_falls_back_to_har_browser():
    info = browser_info(_entries(_entry("https://lms.test/")), {"name": "Firefox", "version": "125.0"})
    assert info["user_agent"] is None
    assert info["full_browser_string"] == "Firefox 125.0"
    assert info["full_os_string"] == "Unknown"

    info = browser_info(_entries(_entry("https://lms.test/", request_headers=[("User-Agent", CHROME_UA)])))
    assert info["full_browser_string"] == "Google Chrome 124.0.0.0"
    assert info["full_os_string"] == "Windows 10/11"


def test_network_health():
    healthy = network_health(_entries(
        _entry("https://lms.test/"),
        _entry("https://lms.test/r", status=301),
        _entry("https://o1.ingest.sentry.io/api", status=500),
    ))
    assert healthy["is_healthy"]
    assert healthy["total_non_telemetry"] == 2
    assert healthy["redirect_requests"] == 1

    unhealthy = network_health(_entries(_entry("https://lms.test/"), _entry("https://lms.test/x", status=0)))
    assert not unhealthy["is_healthy"]
    assert unhealthy["failed_requests"] == 1
