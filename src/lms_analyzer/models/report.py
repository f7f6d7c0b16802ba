from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, List, Optional


class FindingSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DiagnosisSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class RootCause(str, Enum):
    BACKEND_SERVICE_AUTH_FAILURE = "backend_service_auth_failure"
    AUTHENTICATION_FAILURE = "authentication_failure"
    CLIENT_SIDE_CRASH = "client_side_crash"
    OAUTH_INCOMPLETE = "oauth_incomplete"


@dataclass(frozen=True)
class Finding:
    severity: FindingSeverity
    kind: str
    message: str
    impact: str = ""


@dataclass
class CompatibilityReport:
    score: int
    compatible: bool
    issues: List[Finding] = field(default_factory=list)
    warnings: List[Finding] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class Diagnosis:
    is_incomplete: bool = False
    severity: DiagnosisSeverity = DiagnosisSeverity.INFO
    root_cause: Optional[RootCause] = None
    reasons: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums, sets and tuples into JSON-ready values."""
    if hasattr(value, "__dataclass_fields__"):
        return {key: to_jsonable(item) for key, item in asdict(value).items()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_jsonable(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value
