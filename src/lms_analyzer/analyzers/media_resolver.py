from __future__ import annotations

import html
import logging
import posixpath
import re
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

from lms_analyzer.models.documents import ContainerManifest, ParsedDocument
from lms_analyzer.models.entities import MediaReference, ReferenceStatus, SourceKind

logger = logging.getLogger(__name__)

_MATERIAL_URI_RE = re.compile(r"<(?:matimage|mataudio|matvideo)[^>]*\suri=\"([^\"]+)\"")
_MARKUP_ATTR_RE = re.compile(r"\b(?:src|href)=\"([^\"]+)\"")
_FILEBASE_RE = re.compile(r"^\$IMS-CC-FILEBASE\$/?", re.IGNORECASE)
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]+:", re.IGNORECASE)


def decode_reference(reference: str) -> str:
    """Percent-decode a reference; malformed escapes leave the raw value."""
    try:
        return unquote(reference, errors="strict")
    except UnicodeDecodeError:
        return reference


def normalize_reference_path(value: str) -> str:
    path = str(value or "").replace("\\", "/").strip()
    path = _FILEBASE_RE.sub("", path)
    while path.startswith("./"):
        path = path[2:]
    return path.strip()


def is_external_reference(value: str) -> bool:
    candidate = value.strip()
    return candidate.startswith("//") or bool(_SCHEME_RE.match(candidate))


def _lookup_path(path: str) -> str:
    for separator in ("#", "?"):
        path = path.split(separator, 1)[0]
    return path


def _scan(raw_text: str) -> List[Tuple[str, SourceKind]]:
    text = html.unescape(raw_text)
    found: List[Tuple[str, SourceKind]] = []
    seen = set()
    matches = [(m, SourceKind.STRUCTURAL_ATTRIBUTE) for m in _MATERIAL_URI_RE.findall(text)]
    matches += [(m, SourceKind.MARKUP_ATTRIBUTE) for m in _MARKUP_ATTR_RE.findall(text)]
    for reference, kind in matches:
        if reference.startswith("#") or reference in seen:
            continue
        seen.add(reference)
        found.append((reference, kind))
    return found


def classify_reference(
    reference: str,
    source_kind: SourceKind,
    manifest: Optional[ContainerManifest] = None,
    document_dir: str = "",
) -> MediaReference:
    decoded = decode_reference(reference)
    normalized = normalize_reference_path(decoded)
    if is_external_reference(decoded):
        status = ReferenceStatus.EXTERNAL
    elif manifest is None:
        status = ReferenceStatus.UNKNOWN
    else:
        lookup = _lookup_path(normalized)
        candidates = [lookup]
        if document_dir:
            candidates.append(posixpath.normpath(posixpath.join(document_dir, lookup)))
        resolved = any(manifest.contains(candidate) for candidate in candidates if candidate)
        status = ReferenceStatus.RESOLVED if resolved else ReferenceStatus.MISSING
    return MediaReference(
        raw_reference=reference,
        decoded_reference=decoded,
        normalized_path=normalized,
        source_kind=source_kind,
        classification=status,
        is_internal=status != ReferenceStatus.EXTERNAL,
    )


def resolve_media_references(
    doc: ParsedDocument,
    manifest: Optional[ContainerManifest] = None,
) -> List[MediaReference]:
    """Find media references in a document's raw text and classify each one.

    Without a manifest, internal references cannot be checked and are reported
    as ``unknown``. With one, a reference resolves if its package-root path or
    its path relative to the document's folder appears in the physical
    inventory or the manifest declarations.
    """
    if not doc.raw_text:
        return []
    document_dir = posixpath.dirname((doc.source_name or "").replace("\\", "/"))
    references = [
        classify_reference(reference, kind, manifest, document_dir)
        for reference, kind in _scan(doc.raw_text)
    ]
    logger.debug(
        "Resolved %d media references in %s", len(references), doc.source_name or "<document>"
    )
    return references


def merge_media_references(groups: Iterable[List[MediaReference]]) -> List[MediaReference]:
    merged: List[MediaReference] = []
    seen = set()
    for group in groups:
        for reference in group:
            key = (reference.raw_reference, reference.source_kind)
            if key in seen:
                continue
            seen.add(key)
            merged.append(reference)
    return merged


def summarize_media(references: List[MediaReference]) -> Dict[str, object]:
    counts = {status.value: 0 for status in ReferenceStatus}
    for reference in references:
        counts[reference.classification.value] += 1
    return {
        "total": len(references),
        "internal": sum(1 for ref in references if ref.is_internal),
        **counts,
        "references": references,
    }
