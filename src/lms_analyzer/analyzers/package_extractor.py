from __future__ import annotations

import asyncio
import io
import logging
import re
import xml.etree.ElementTree as ET
import zipfile
import zlib
from typing import Dict, List, Optional, Tuple

from lms_analyzer.errors import ExtractionError
from lms_analyzer.models.documents import ContainerManifest, ExtractedPackage, MemberDocument
from lms_analyzer.parsers.qti_parser import decode_text, local_name, looks_like_qti

logger = logging.getLogger(__name__)

MANIFEST_NAME = "imsmanifest.xml"
DEFAULT_MAX_MEMBER_BYTES = 50 * 1024 * 1024

_MANIFEST_FILE_RE = re.compile(r"<file\s+href=\"([^\"]+)\"")

# (member name, decoded text, skip reason)
MemberRead = Tuple[str, Optional[str], Optional[str]]


def _open_archive(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data), "r")
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
        raise ExtractionError(f"Failed to extract ZIP package: {exc}") from exc


def _read_member_text(data: bytes, name: str, limit: int) -> MemberRead:
    """Read one member on its own archive handle.

    Oversized or unreadable members (CRC failures, encryption, unsupported
    compression) come back with a skip reason instead of text.
    """
    with _open_archive(data) as archive:
        info = archive.getinfo(name)
        if info.file_size > limit:
            logger.warning("Skipping %s: %d bytes exceeds limit %d", name, info.file_size, limit)
            return name, None, f"exceeds size limit ({info.file_size} > {limit} bytes)"
        try:
            return name, decode_text(archive.read(info)), None
        except (zipfile.BadZipFile, RuntimeError, NotImplementedError, OSError, EOFError, zlib.error) as exc:
            logger.warning("Skipping unreadable member %s: %s", name, exc)
            return name, None, f"unreadable: {exc}"


def physical_member_paths(archive: zipfile.ZipFile) -> List[str]:
    return [info.filename.replace("\\", "/") for info in archive.infolist() if not info.is_dir()]


def manifest_file_refs(manifest_text: str) -> List[str]:
    """``<file href>`` values declared by a manifest, in document order."""
    try:
        root = ET.fromstring(manifest_text)
    except ET.ParseError:
        logger.debug("Manifest is not well-formed; scanning raw text for file references")
        return [match.strip() for match in _MANIFEST_FILE_RE.findall(manifest_text)]
    refs: List[str] = []
    for element in root.iter():
        if isinstance(element.tag, str) and local_name(element.tag) == "file":
            href = element.attrib.get("href")
            if href and href.strip():
                refs.append(href.strip())
    return refs


def _candidate_names(names: List[str]) -> List[str]:
    return [
        name for name in names
        if name.lower().endswith(".xml") and name != MANIFEST_NAME
    ]


def _assemble(
    physical: List[str],
    manifest_read: Optional[MemberRead],
    member_reads: List[MemberRead],
) -> ExtractedPackage:
    skipped: List[Dict[str, str]] = []
    declared: List[str] = []
    if manifest_read is not None:
        _, manifest_text, reason = manifest_read
        if manifest_text is not None:
            declared = manifest_file_refs(manifest_text)
        else:
            skipped.append({"filename": MANIFEST_NAME, "reason": reason or "unreadable"})
    members: List[MemberDocument] = []
    for name, content, reason in member_reads:
        if content is None:
            skipped.append({"filename": name, "reason": reason or "unreadable"})
            continue
        if looks_like_qti(content):
            members.append(MemberDocument(filename=name, content=content))
        else:
            logger.debug("Excluding %s: no assessment markers", name)
    manifest = ContainerManifest.build(declared=declared, physical=physical)
    return ExtractedPackage(
        manifest=manifest,
        member_documents=members,
        physical_paths=manifest.physical_member_paths,
        has_manifest=manifest_read is not None,
        skipped_members=skipped,
    )


def _list_archive(data: bytes) -> Tuple[List[str], List[str]]:
    with _open_archive(data) as archive:
        names = [info.filename for info in archive.infolist() if not info.is_dir()]
        return names, physical_member_paths(archive)


def extract_package(data: bytes, max_member_bytes: int = DEFAULT_MAX_MEMBER_BYTES) -> ExtractedPackage:
    """Open a QTI zip package and collect its manifest, inventory and assessment documents."""
    names, physical = _list_archive(data)
    manifest_read = None
    if MANIFEST_NAME in names:
        manifest_read = _read_member_text(data, MANIFEST_NAME, max_member_bytes)
    member_reads = [_read_member_text(data, name, max_member_bytes) for name in _candidate_names(names)]
    return _assemble(physical, manifest_read, member_reads)


async def extract_package_async(data: bytes, max_member_bytes: int = DEFAULT_MAX_MEMBER_BYTES) -> ExtractedPackage:
    """Same as :func:`extract_package`, reading members concurrently.

    Each read opens its own archive handle over the immutable buffer; results
    are joined in archive enumeration order.
    """
    names, physical = await asyncio.to_thread(_list_archive, data)
    manifest_read = None
    if MANIFEST_NAME in names:
        manifest_read = await asyncio.to_thread(_read_member_text, data, MANIFEST_NAME, max_member_bytes)
    member_reads = await asyncio.gather(*(
        asyncio.to_thread(_read_member_text, data, name, max_member_bytes)
        for name in _candidate_names(names)
    ))
    return _assemble(physical, manifest_read, list(member_reads))
