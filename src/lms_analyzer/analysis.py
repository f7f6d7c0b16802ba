"""Entry points that turn raw input into a report dict.

``analyze`` dispatches on the input: zip containers go to
``analyze_package``, JSON HTTP archives to ``analyze_capture`` and anything
else is treated as a single QTI document.
"""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Union

import yaml

from lms_analyzer.analyzers.package_extractor import extract_package_async
from lms_analyzer.errors import AnalyzerError, NoAssessmentContentError
from lms_analyzer.knowledge.capability_catalog import CapabilityCatalog, default_catalog
from lms_analyzer.models.documents import ArchiveKind, ContainerManifest, RawArchive
from lms_analyzer.models.report import to_jsonable
from lms_analyzer.parsers.har_parser import looks_like_har, parse_har
from lms_analyzer.parsers.qti_parser import decode_text, parse_qti
from lms_analyzer.reports.assessment import (
    AssessmentAnalysis,
    analyze_document,
    build_assessment_report,
    build_package_report,
)
from lms_analyzer.reports.capture import build_capture_report
from lms_analyzer.utils.settings_schema import validate_settings
from lms_analyzer.utils.source_loader import classify_content

logger = logging.getLogger(__name__)

KIND_AUTO = "auto"
KIND_ASSESSMENT = "assessment"
KIND_CAPTURE = "capture"
KIND_PACKAGE = "package"
KINDS = (KIND_AUTO, KIND_ASSESSMENT, KIND_CAPTURE, KIND_PACKAGE)

RawInput = Union[RawArchive, bytes, str]


def _as_archive(raw: RawInput) -> RawArchive:
    if isinstance(raw, RawArchive):
        return raw
    return classify_content(raw)


def load_catalog(settings: Optional[Dict[str, Any]] = None) -> CapabilityCatalog:
    path = ((settings or {}).get("analysis") or {}).get("capability_catalog")
    if not path:
        return default_catalog()
    try:
        return CapabilityCatalog.load(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning("Falling back to builtin capability catalog; %s could not be loaded: %s", path, exc)
        return default_catalog()


def detect_kind(raw: RawInput) -> str:
    archive = _as_archive(raw)
    if archive.kind == ArchiveKind.CONTAINER:
        return KIND_PACKAGE
    if looks_like_har(decode_text(archive.content)):
        return KIND_CAPTURE
    return KIND_ASSESSMENT


def analyze(
    raw: RawInput,
    settings: Optional[Dict[str, Any]] = None,
    kind: str = KIND_AUTO,
    catalog: Optional[CapabilityCatalog] = None,
) -> Dict[str, Any]:
    if kind not in KINDS:
        raise ValueError(f"Unknown input kind: {kind}")
    settings = validate_settings(settings)
    archive = _as_archive(raw)
    if kind == KIND_AUTO:
        kind = detect_kind(archive)
    if kind == KIND_PACKAGE:
        return analyze_package(archive, settings, catalog)
    if kind == KIND_CAPTURE:
        return analyze_capture(archive, settings)
    return analyze_assessment(archive, settings, catalog)


def analyze_capture(raw: RawInput, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    archive = _as_archive(raw)
    settings = validate_settings(settings)
    doc = parse_har(archive.content, source_name=archive.name)
    if not doc.well_formed:
        logger.warning("Capture %s is malformed: %s", archive.name or "<capture>", doc.parse_errors[0].message)
    return build_capture_report(doc, settings.get("har"))


def analyze_assessment(
    raw: RawInput,
    settings: Optional[Dict[str, Any]] = None,
    catalog: Optional[CapabilityCatalog] = None,
    manifest: Optional[ContainerManifest] = None,
) -> Dict[str, Any]:
    archive = _as_archive(raw)
    catalog = catalog or load_catalog(settings)
    doc = parse_qti(archive.content, source_name=archive.name)
    if not doc.well_formed:
        logger.warning("Document %s is malformed: %s", archive.name or "<document>", doc.parse_errors[0].message)
    return build_assessment_report(analyze_document(doc, manifest, catalog), catalog)


def analyze_package(
    raw: RawInput,
    settings: Optional[Dict[str, Any]] = None,
    catalog: Optional[CapabilityCatalog] = None,
) -> Dict[str, Any]:
    """Blocking wrapper around :func:`analyze_package_async`.

    Inside a running event loop the coroutine is driven on a worker thread,
    which blocks the caller's loop until the package is done; async callers
    should await :func:`analyze_package_async` directly.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(analyze_package_async(raw, settings, catalog))
    with ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, analyze_package_async(raw, settings, catalog)).result()


async def analyze_package_async(
    raw: RawInput,
    settings: Optional[Dict[str, Any]] = None,
    catalog: Optional[CapabilityCatalog] = None,
) -> Dict[str, Any]:
    archive = _as_archive(raw)
    settings = validate_settings(settings)
    catalog = catalog or load_catalog(settings)
    content = archive.content
    if isinstance(content, str):
        raise AnalyzerError("Package content must be bytes")

    package = await extract_package_async(content, settings["analysis"]["max_member_bytes"])
    if not package.member_documents:
        raise NoAssessmentContentError("No QTI files found in ZIP package")

    analyses: List[AssessmentAnalysis] = []
    failed_files: List[Dict[str, Any]] = []
    for member in package.member_documents:
        doc = parse_qti(member.content, source_name=member.filename)
        if not doc.well_formed:
            logger.warning("Member %s failed to parse: %s", member.filename, doc.parse_errors[0].message)
            failed_files.append({"filename": member.filename, "errors": to_jsonable(doc.parse_errors)})
            continue
        analyses.append(analyze_document(doc, package.manifest, catalog))

    if not analyses:
        raise NoAssessmentContentError("Failed to parse any QTI assessment files in ZIP package")

    package_info = {
        "file_count": len(package.physical_paths),
        "files": [member.filename for member in package.member_documents],
        "has_manifest": package.has_manifest,
        "analyzed_file_count": len(analyses),
        "failed_file_count": len(failed_files),
        "failed_files": failed_files,
        "skipped_members": list(package.skipped_members),
    }
    return build_package_report(analyses, package_info, catalog)
