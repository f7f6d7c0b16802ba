from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class Question:
    id: Optional[str]
    type: str
    points: float = 1.0
    title: Optional[str] = None
    has_feedback: bool = False
    has_media: bool = False
    href: Optional[str] = None
    source_file: Optional[str] = None


@dataclass(frozen=True)
class Header:
    name: str
    value: str


@dataclass(frozen=True)
class Timings:
    dns: float = 0.0
    connect: float = 0.0
    wait: float = 0.0
    receive: float = 0.0

    @property
    def total(self) -> float:
        return self.dns + self.connect + self.wait + self.receive


@dataclass(frozen=True)
class TrafficEntry:
    sequence_id: int
    method: str
    url: str
    status: int
    host: str = ""
    status_text: str = ""
    started_date_time: Optional[str] = None
    mime_type: str = ""
    resource_type: str = "Other"
    content_size: int = -1
    transfer_size: int = -1
    time: float = 0.0
    timings: Timings = field(default_factory=Timings)
    request_headers: List[Header] = field(default_factory=list)
    response_headers: List[Header] = field(default_factory=list)
    response_text: Optional[str] = None

    def response_header_values(self, name: str) -> List[str]:
        lowered = name.lower()
        return [h.value for h in self.response_headers if h.name.lower() == lowered]

    def request_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for header in self.request_headers:
            if header.name.lower() == lowered:
                return header.value
        return None


@dataclass(frozen=True)
class PageRecord:
    id: Optional[str]
    title: str = ""
    started_date_time: Optional[str] = None


class SourceKind(str, Enum):
    STRUCTURAL_ATTRIBUTE = "structural-attribute"
    MARKUP_ATTRIBUTE = "markup-attribute"


class ReferenceStatus(str, Enum):
    RESOLVED = "resolved"
    MISSING = "missing"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class MediaReference:
    raw_reference: str
    decoded_reference: str
    normalized_path: str
    source_kind: SourceKind
    classification: ReferenceStatus
    is_internal: bool
