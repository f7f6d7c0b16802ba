"""Root-cause diagnosis for a failed or incomplete browser session.

Rules run in priority order and the first terminal match wins:

    1. 401 from a backend or identity service       -> backend_service_auth_failure
    2. last page still shows an in-progress marker   (records a finding, keeps going)
    3. errors on login/auth/oauth/saml endpoints     -> authentication_failure
    4. healthy network with no errors                -> client_side_crash
    5. auth traffic without a callback, some errored -> oauth_incomplete
    6. no cookies set during an erroring auth flow   (appends a finding)
    7. generic guidance when nothing else explains an incomplete session

Backend failures are checked first so they are never reported as client bugs,
and a healthy trace never gets an auth or cookie root cause.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qs, urlsplit

from lms_analyzer.analyzers.domain_ranker import (
    DEFAULT_FIRST_PARTY_TOP_N,
    DEFAULT_LARGE_RESPONSE_BYTES,
    detect_large_responses,
    detect_third_party_scripts,
    first_party_hosts,
    rank_domains,
)
from lms_analyzer.analyzers.traffic_extractor import DEFAULT_TELEMETRY_HOSTS
from lms_analyzer.analyzers.traffic_metrics import (
    cookie_analysis,
    detect_auth_flow,
    find_errors,
    network_health,
)
from lms_analyzer.models.entities import PageRecord, TrafficEntry
from lms_analyzer.models.report import Diagnosis, DiagnosisSeverity, RootCause

logger = logging.getLogger(__name__)

BACKEND_PATH_MARKERS = ("user-api", "identity", "api/usersync", "api-gateway")
AUTH_PATH_MARKERS = ("/login", "/auth", "/oauth", "/saml")
IN_PROGRESS_MARKERS = ("in-progress",)

DEFAULT_LARGE_RESPONSE_SAMPLES = 3
DEFAULT_THIRD_PARTY_SAMPLES = 5

GENERIC_RECOMMENDATIONS = (
    "Review browser console for JavaScript errors",
    "Ensure popups and redirects are not blocked",
    "Try clearing browser cache and cookies",
    "Test in incognito mode to rule out browser extensions",
)


def _is_backend_path(url: str) -> bool:
    lowered = url.lower()
    if any(marker in lowered for marker in BACKEND_PATH_MARKERS):
        return True
    return "/api/" in lowered and "/login" not in lowered and "/auth" not in lowered


def _is_auth_path(url: str) -> bool:
    lowered = url.lower()
    return any(marker in lowered for marker in AUTH_PATH_MARKERS)


def _has_code_param(url: str) -> bool:
    try:
        query = urlsplit(url).query
    except ValueError:
        return False
    return "code" in parse_qs(query, keep_blank_values=True)


def _backend_failure(diagnosis: Diagnosis, api_errors: List[Dict[str, Any]]) -> None:
    diagnosis.is_incomplete = True
    diagnosis.severity = DiagnosisSeverity.CRITICAL
    diagnosis.root_cause = RootCause.BACKEND_SERVICE_AUTH_FAILURE

    user_api_error = next(
        (err for err in api_errors if "user-api" in err["url"].lower() or "usersync" in err["url"].lower()),
        None,
    )
    if user_api_error is None:
        first = api_errors[0]
        diagnosis.reasons.append(f"Backend API authentication failure: {first['status']} on {first['url'][:80]}")
        diagnosis.recommendations.append("Contact Canvas administrator - backend service authentication is failing")
        return

    parts = urlsplit(user_api_error["url"])
    diagnosis.reasons.extend([
        "Backend service authentication failure detected",
        "The SAML/SSO sign-in completed, but Canvas could not sync user data from the identity provider.",
        f"Failed service: {parts.hostname or user_api_error['url'][:100]}",
        f"Endpoint: {parts.path}",
        f"Error: {user_api_error['status']} {user_api_error['status_text']}".rstrip(),
        "The identity service lacks authorization to sync user data (missing or invalid service credentials).",
    ])
    diagnosis.recommendations.extend([
        "Action required by a Canvas administrator; this is not a client-side issue",
        "Verify user-api service credentials in the environment",
        "Check API gateway authentication configuration",
        "Ensure the identity service has the required permissions",
        "Review service-to-service authentication tokens",
    ])
    if ".beta." in user_api_error["url"].lower():
        diagnosis.recommendations.append("Verify the beta environment is configured correctly")


def _client_side_crash(
    diagnosis: Diagnosis,
    entries: List[TrafficEntry],
    health: Dict[str, Any],
    telemetry_hosts: List[str],
    first_party_top_n: int,
    large_response_bytes: int,
    large_response_samples: int,
    third_party_samples: int,
) -> None:
    diagnosis.is_incomplete = True
    diagnosis.severity = DiagnosisSeverity.WARNING
    diagnosis.root_cause = RootCause.CLIENT_SIDE_CRASH

    diagnosis.reasons.append("Network layer is healthy: all application requests returned 2xx/3xx.")
    diagnosis.reasons.append(
        f"Total requests analysed: {health['total_non_telemetry']} (telemetry requests excluded)."
    )
    diagnosis.reasons.append("Likely cause: client-side JavaScript or DOM error")

    first_party = first_party_hosts(rank_domains(entries), first_party_top_n)
    scripts = detect_third_party_scripts(entries, first_party, telemetry_hosts)
    if scripts:
        diagnosis.reasons.append("Third-party scripts loaded in this session:")
        diagnosis.reasons.extend(f"  - {host}" for host in scripts[:third_party_samples])

    large = detect_large_responses(entries, large_response_bytes)
    if large:
        diagnosis.reasons.append(
            f"Large responses (>{large_response_bytes // 1024} KB) that may contain inline scripts:"
        )
        diagnosis.reasons.extend(
            f"  - {item['url'][:80]} ({item['size_kb']} KB)" for item in large[:large_response_samples]
        )

    diagnosis.recommendations.extend([
        "Check the browser console (F12) for JavaScript errors at the time of the crash",
        "Look for insertBefore, nextSibling or other DOM exceptions; these point to a library conflict",
        "If embedded content is involved, make sure it cannot load its own script tags",
        "Reproduce in a private window with extensions disabled to rule out third-party tools",
        "Test with a minimal version of the content to confirm the problem is content-specific",
    ])


def diagnose_capture(
    entries: List[TrafficEntry],
    pages: List[PageRecord],
    telemetry_hosts: Iterable[str] = DEFAULT_TELEMETRY_HOSTS,
    first_party_top_n: int = DEFAULT_FIRST_PARTY_TOP_N,
    large_response_bytes: int = DEFAULT_LARGE_RESPONSE_BYTES,
    large_response_samples: int = DEFAULT_LARGE_RESPONSE_SAMPLES,
    third_party_samples: int = DEFAULT_THIRD_PARTY_SAMPLES,
    in_progress_markers: Optional[Iterable[str]] = None,
) -> Diagnosis:
    telemetry_hosts = list(telemetry_hosts)
    markers = [marker.lower() for marker in (in_progress_markers or IN_PROGRESS_MARKERS)]
    diagnosis = Diagnosis()

    errors = find_errors(entries, telemetry_hosts)
    auth_flow = detect_auth_flow(entries)
    cookies = cookie_analysis(entries)
    health = network_health(entries, telemetry_hosts)

    api_errors = [err for err in errors if err["status"] == 401 and _is_backend_path(err["url"])]
    if api_errors:
        _backend_failure(diagnosis, api_errors)
        logger.debug("Diagnosis: backend service auth failure (%d errors)", len(api_errors))
        return diagnosis

    last_title = (pages[-1].title if pages else "") or ""
    if any(marker in last_title.lower() for marker in markers):
        diagnosis.is_incomplete = True
        diagnosis.severity = DiagnosisSeverity.WARNING
        diagnosis.reasons.append('Session stuck on "in-progress" waiting page')

    auth_errors = [err for err in errors if _is_auth_path(err["url"])]
    if auth_errors:
        diagnosis.is_incomplete = True
        diagnosis.severity = DiagnosisSeverity.CRITICAL
        diagnosis.root_cause = RootCause.AUTHENTICATION_FAILURE
        diagnosis.reasons.append(f"Authentication endpoint errors: {len(auth_errors)} error(s)")
        diagnosis.reasons.extend(
            f"  - {err['status']} {err['status_text']} - {err['url'][:80]}" for err in auth_errors[:3]
        )
        statuses = {err["status"] for err in auth_errors}
        if 401 in statuses:
            diagnosis.recommendations.append("Check credentials; username or password may be incorrect")
        elif 403 in statuses:
            diagnosis.recommendations.append("Access forbidden; the account may be locked or not authorized")
        else:
            diagnosis.recommendations.append("Contact Canvas administrator about authentication service errors")
        return diagnosis

    if health["is_healthy"] and not errors:
        _client_side_crash(
            diagnosis,
            entries,
            health,
            telemetry_hosts,
            first_party_top_n,
            large_response_bytes,
            large_response_samples,
            third_party_samples,
        )
        return diagnosis

    if auth_flow["detected"]:
        requests = auth_flow["requests"]
        has_callback = any("callback" in request["url"].lower() for request in requests)
        has_code = any(_has_code_param(entry.url) for entry in entries)
        failed_auth = [request for request in requests if request["status"] >= 400 or request["status"] == 0]
        if not has_callback and not has_code and failed_auth:
            diagnosis.is_incomplete = True
            diagnosis.severity = DiagnosisSeverity.WARNING
            diagnosis.root_cause = RootCause.OAUTH_INCOMPLETE
            diagnosis.reasons.append("OAuth/SSO callback was not received from the authentication provider")
            diagnosis.reasons.append(f"Auth requests with errors: {len(failed_auth)}")
            diagnosis.reasons.extend(
                f"  - {request['status']} {request['url'][:80]}" for request in failed_auth[:3]
            )
            diagnosis.recommendations.extend([
                "Confirm the authentication provider (SAML/SSO) completed successfully",
                "Verify browser popups are not blocked for this domain",
                "Check if third-party cookies are enabled (required for cross-domain SSO)",
                "Try in incognito/private mode to rule out extension interference",
            ])

    if cookies["total_cookies"] == 0 and auth_flow["detected"] and errors:
        if not any("cookie" in reason.lower() for reason in diagnosis.reasons):
            diagnosis.is_incomplete = True
            if diagnosis.severity == DiagnosisSeverity.INFO:
                diagnosis.severity = DiagnosisSeverity.WARNING
            diagnosis.reasons.append("No session cookies were set during the auth flow")
            diagnosis.recommendations.append("Check that third-party cookies are enabled in browser settings")
            diagnosis.recommendations.append("Try in incognito/private mode to eliminate extension interference")

    if diagnosis.is_incomplete and diagnosis.root_cause is None and not diagnosis.recommendations:
        diagnosis.recommendations.extend(GENERIC_RECOMMENDATIONS)

    return diagnosis
