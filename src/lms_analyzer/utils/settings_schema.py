"""Settings validation with Pydantic models.

Every section is optional in the YAML file; omitted keys take the defaults
below, so callers can index the returned dict without ``.get`` chains.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


class AnalysisSettings(BaseModel):
    artifacts_dir: str = "artifacts"
    max_member_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    capability_catalog: Optional[str] = None
    schemas_dir: str = "config/schemas"
    validate_reports: bool = True


class HarSettings(BaseModel):
    telemetry_hosts: List[str] = Field(default_factory=lambda: ["sentry.io"])
    first_party_top_n: int = Field(default=2, ge=0)
    large_response_bytes: int = Field(default=100 * 1024, ge=0)
    large_response_samples: int = Field(default=3, ge=0)
    third_party_samples: int = Field(default=5, ge=0)
    slowest_requests: int = Field(default=10, ge=0)
    in_progress_markers: List[str] = Field(default_factory=lambda: ["in-progress"])

    @field_validator("telemetry_hosts")
    @classmethod
    def normalize_hosts(cls, v: List[str]) -> List[str]:
        hosts = [host.strip().lower() for host in v if host and host.strip()]
        if not hosts:
            raise ValueError("telemetry_hosts must list at least one host")
        return hosts


class ObservabilitySettings(BaseModel):
    enabled: bool = True


class TelemetrySettings(BaseModel):
    enabled: bool = False
    service_name: str = "lms-analyzer"
    otlp_endpoint: Optional[str] = None
    otlp_insecure: bool = True


class Settings(BaseModel):
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    har: HarSettings = Field(default_factory=HarSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)


def validate_settings(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return Settings.model_validate(data or {}).model_dump()
    except ValidationError as exc:
        raise ValueError(f"Invalid settings: {exc}") from exc


def default_settings() -> Dict[str, Any]:
    return Settings().model_dump()
