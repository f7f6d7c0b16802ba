"""Assessment report assembly.

A document is reduced to an :class:`AssessmentAnalysis` (its extracted
entities) and reports are always computed from those, so a single document
and a merged package go through the same aggregation code.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from lms_analyzer.analyzers.compatibility import check_compatibility
from lms_analyzer.analyzers.media_resolver import (
    merge_media_references,
    resolve_media_references,
    summarize_media,
)
from lms_analyzer.analyzers.question_extractor import extract_metadata, extract_questions
from lms_analyzer.analyzers.question_metrics import (
    analyze_content,
    interaction_types,
    merge_content,
    scoring_analysis,
    summarize_questions,
)
from lms_analyzer.analyzers.structure_validator import ValidationResult, validate_document
from lms_analyzer.knowledge.capability_catalog import CapabilityCatalog, default_catalog
from lms_analyzer.models.documents import ContainerManifest, FormatVersion, ParsedDocument, ParseError
from lms_analyzer.models.entities import MediaReference, Question
from lms_analyzer.models.report import to_jsonable


@dataclass
class AssessmentAnalysis:
    doc: ParsedDocument
    metadata: Dict[str, Any]
    validation: ValidationResult
    questions: List[Question] = field(default_factory=list)
    media_references: List[MediaReference] = field(default_factory=list)
    content: Dict[str, bool] = field(default_factory=dict)


def analyze_document(
    doc: ParsedDocument,
    manifest: Optional[ContainerManifest] = None,
    catalog: Optional[CapabilityCatalog] = None,
) -> AssessmentAnalysis:
    catalog = catalog or default_catalog()
    questions = extract_questions(doc, catalog)
    return AssessmentAnalysis(
        doc=doc,
        metadata=extract_metadata(doc, questions),
        validation=validate_document(doc),
        questions=questions,
        media_references=resolve_media_references(doc, manifest),
        content=analyze_content(doc),
    )


def document_warnings(metadata: Dict[str, Any]) -> List[Dict[str, str]]:
    warnings = []
    if not metadata.get("title"):
        warnings.append({"kind": "missing_metadata", "severity": "medium", "message": "Missing title metadata"})
    if not metadata.get("question_count"):
        warnings.append({"kind": "no_questions", "severity": "high", "message": "No questions found in file"})
    return warnings


def _validation_section(validation: ValidationResult, parse_errors: List[ParseError], well_formed: bool) -> Dict[str, Any]:
    return {
        "valid": validation.valid,
        "errors": list(validation.errors),
        "warnings": list(validation.warnings),
        "well_formed": well_formed,
        "parse_errors": to_jsonable(parse_errors),
    }


def _report(
    version: FormatVersion,
    metadata: Dict[str, Any],
    validation: Dict[str, Any],
    validation_result: ValidationResult,
    questions: List[Question],
    media_references: List[MediaReference],
    content: Dict[str, bool],
    catalog: CapabilityCatalog,
) -> Dict[str, Any]:
    media = summarize_media(media_references)
    compatibility = check_compatibility(questions, version, media, validation_result, catalog)
    return {
        "kind": "assessment",
        "version": version.value,
        "metadata": metadata,
        "validation": validation,
        "question_summary": summarize_questions(questions),
        "interaction_types": interaction_types(questions, catalog),
        "scoring_analysis": scoring_analysis(questions),
        "compatibility": to_jsonable(compatibility),
        "content_analysis": content,
        "media_analysis": to_jsonable(media),
        "questions": to_jsonable(questions),
        "warnings": document_warnings(metadata),
    }


def build_assessment_report(
    analysis: AssessmentAnalysis,
    catalog: Optional[CapabilityCatalog] = None,
) -> Dict[str, Any]:
    doc = analysis.doc
    return _report(
        version=doc.format_version,
        metadata=analysis.metadata,
        validation=_validation_section(analysis.validation, doc.parse_errors, doc.well_formed),
        validation_result=analysis.validation,
        questions=analysis.questions,
        media_references=analysis.media_references,
        content=analysis.content,
        catalog=catalog or default_catalog(),
    )


def build_package_report(
    analyses: List[AssessmentAnalysis],
    package_info: Dict[str, Any],
    catalog: Optional[CapabilityCatalog] = None,
) -> Dict[str, Any]:
    """Merge per-member analyses into one report; every aggregate is recomputed.

    ``analyses`` must be non-empty and in archive order. The version and
    metadata come from the first member; errors and warnings from each member
    are tagged with its filename.
    """
    catalog = catalog or default_catalog()
    first = analyses[0]
    questions = [question for analysis in analyses for question in analysis.questions]
    metadata = dict(first.metadata)
    metadata["question_count"] = len(questions)

    errors: List[Dict[str, str]] = []
    warnings: List[Dict[str, str]] = []
    for analysis in analyses:
        filename = analysis.doc.source_name or ""
        errors.extend({**error, "file": filename} for error in analysis.validation.errors)
        warnings.extend({**warning, "file": filename} for warning in analysis.validation.warnings)
    merged_validation = ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    report = _report(
        version=first.doc.format_version,
        metadata=metadata,
        validation=_validation_section(merged_validation, [], True),
        validation_result=merged_validation,
        questions=questions,
        media_references=merge_media_references(a.media_references for a in analyses),
        content=merge_content(a.content for a in analyses),
        catalog=catalog,
    )
    report["kind"] = "package"
    report["files"] = [
        {
            "filename": analysis.doc.source_name,
            "version": analysis.doc.format_version.value,
            "question_count": len(analysis.questions),
            "valid": analysis.validation.valid,
        }
        for analysis in analyses
    ]
    report["package_info"] = package_info
    return report
