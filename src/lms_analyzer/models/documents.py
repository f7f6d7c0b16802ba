from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from lms_analyzer.models.node import Node


class ArchiveKind(str, Enum):
    DOCUMENT = "document"
    CONTAINER = "container"


class FormatVersion(str, Enum):
    QTI_1_2 = "1.2"
    QTI_2_1 = "2.1"
    HAR = "har"


@dataclass(frozen=True)
class RawArchive:
    content: Union[bytes, str]
    kind: ArchiveKind = ArchiveKind.DOCUMENT
    name: Optional[str] = None


@dataclass(frozen=True)
class ParseError:
    kind: str
    message: str
    location: Optional[str] = None


@dataclass(frozen=True)
class ParsedDocument:
    format_version: FormatVersion
    tree: Optional[Node]
    parse_errors: List[ParseError] = field(default_factory=list)
    well_formed: bool = True
    raw_text: str = ""
    source_name: Optional[str] = None


def normalize_member_path(path: str) -> str:
    """Lower-cased, forward-slash member path with any leading ``./`` removed."""
    value = str(path or "").replace("\\", "/").strip()
    while value.startswith("./"):
        value = value[2:]
    return value.lower()


@dataclass(frozen=True)
class ContainerManifest:
    declared_member_paths: FrozenSet[str] = frozenset()
    physical_member_paths: FrozenSet[str] = frozenset()

    @classmethod
    def build(cls, declared: Iterable[str] = (), physical: Iterable[str] = ()) -> "ContainerManifest":
        return cls(
            declared_member_paths=frozenset(normalize_member_path(p) for p in declared if p),
            physical_member_paths=frozenset(normalize_member_path(p) for p in physical if p),
        )

    def in_physical(self, path: str) -> bool:
        return normalize_member_path(path) in self.physical_member_paths

    def in_declared(self, path: str) -> bool:
        return normalize_member_path(path) in self.declared_member_paths

    def contains(self, path: str) -> bool:
        return self.in_physical(path) or self.in_declared(path)


@dataclass(frozen=True)
class MemberDocument:
    filename: str
    content: str


@dataclass(frozen=True)
class ExtractedPackage:
    manifest: ContainerManifest
    member_documents: List[MemberDocument] = field(default_factory=list)
    physical_paths: FrozenSet[str] = frozenset()
    has_manifest: bool = False
    skipped_members: List[Dict[str, str]] = field(default_factory=list)
