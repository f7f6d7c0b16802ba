"""Import compatibility scoring for assessment content.

The score starts at 100 and loses points per finding:

    issues:    high -20, medium -10, low -5
    warnings:  high -10, medium -5,  low -2

and never drops below 0. ``compatible`` is false whenever any issue exists.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from lms_analyzer.analyzers.question_metrics import interaction_types
from lms_analyzer.analyzers.structure_validator import ValidationResult
from lms_analyzer.knowledge.capability_catalog import (
    SUPPORT_LIMITED,
    SUPPORT_NEW_QUIZZES_ONLY,
    SUPPORT_UNSUPPORTED,
    CapabilityCatalog,
)
from lms_analyzer.models.documents import FormatVersion
from lms_analyzer.models.entities import Question
from lms_analyzer.models.report import CompatibilityReport, Finding, FindingSeverity

ISSUE_PENALTIES = {FindingSeverity.HIGH: 20, FindingSeverity.MEDIUM: 10, FindingSeverity.LOW: 5}
WARNING_PENALTIES = {FindingSeverity.HIGH: 10, FindingSeverity.MEDIUM: 5, FindingSeverity.LOW: 2}

READY_FOR_IMPORT = "File appears compatible with Canvas - ready for import"


def _plural(count: int, noun: str = "question") -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def calculate_compatibility_score(issues: List[Finding], warnings: List[Finding]) -> int:
    score = 100
    score -= sum(ISSUE_PENALTIES.get(issue.severity, 0) for issue in issues)
    score -= sum(WARNING_PENALTIES.get(warning.severity, 0) for warning in warnings)
    return max(0, score)


def generate_recommendations(
    version: FormatVersion,
    issues: List[Finding],
    warnings: List[Finding],
) -> List[str]:
    issue_kinds = {issue.kind for issue in issues}
    warning_kinds = {warning.kind for warning in warnings}
    recommendations: List[str] = []
    if version == FormatVersion.QTI_1_2:
        recommendations.append("Consider converting to QTI 2.1 for better Canvas compatibility")
    if "invalid_structure" in issue_kinds:
        recommendations.append("Fix the document structure so it has a valid QTI root element before import")
    if "unsupported_interaction" in issue_kinds:
        recommendations.append("Review unsupported question types and consider converting to Canvas-supported formats")
    if "new_quizzes_only_interaction" in warning_kinds:
        recommendations.append("Import into Canvas New Quizzes to keep questions that Classic Quizzes cannot represent")
    if "external_references" in warning_kinds:
        recommendations.append("Prepare to manually upload media files referenced in questions")
    if "missing_media_references" in warning_kinds:
        recommendations.append("Re-export the package or include all referenced media files before import")
    if "no_questions" in warning_kinds:
        recommendations.append("Verify the export includes question items before importing")
    if not recommendations:
        recommendations.append(READY_FOR_IMPORT)
    return recommendations


def check_compatibility(
    questions: List[Question],
    version: FormatVersion,
    media_summary: Optional[Dict[str, Any]] = None,
    validation: Optional[ValidationResult] = None,
    catalog: Optional[CapabilityCatalog] = None,
) -> CompatibilityReport:
    """Build the full compatibility report; nothing is carried over between calls."""
    issues: List[Finding] = []
    warnings: List[Finding] = []
    media_summary = media_summary or {}

    if validation is not None and not validation.valid:
        messages = "; ".join(error.get("message", "") for error in validation.errors)
        issues.append(Finding(
            severity=FindingSeverity.HIGH,
            kind="invalid_structure",
            message=f"Document structure is invalid: {messages}",
            impact="The file is unlikely to import into Canvas",
        ))

    if version == FormatVersion.QTI_1_2:
        warnings.append(Finding(
            severity=FindingSeverity.MEDIUM,
            kind="qti_version",
            message="QTI 1.2 has limited Canvas support. Consider upgrading to QTI 2.1 for better compatibility.",
            impact="Some features may not import correctly",
        ))

    for question_type, data in interaction_types(questions, catalog)["types"].items():
        count = data["count"]
        support = data["support"]
        if support == SUPPORT_UNSUPPORTED:
            issues.append(Finding(
                severity=FindingSeverity.HIGH,
                kind="unsupported_interaction",
                message=f"Unsupported interaction type: {question_type} ({_plural(count)})",
                impact="These questions may not import correctly into Canvas",
            ))
        elif support == SUPPORT_LIMITED:
            warnings.append(Finding(
                severity=FindingSeverity.MEDIUM,
                kind="limited_interaction",
                message=f"Limited support for {question_type} ({_plural(count)})",
                impact="These questions may require manual review after import",
            ))
        elif support == SUPPORT_NEW_QUIZZES_ONLY:
            warnings.append(Finding(
                severity=FindingSeverity.MEDIUM,
                kind="new_quizzes_only_interaction",
                message=f"{question_type} ({_plural(count)}) is supported in Canvas New Quizzes only",
                impact="These questions are not supported in Classic Quizzes",
            ))

    if media_summary.get("external", 0) > 0:
        warnings.append(Finding(
            severity=FindingSeverity.MEDIUM,
            kind="external_references",
            message="External media references detected",
            impact="Media files may need manual upload to Canvas",
        ))

    missing = media_summary.get("missing", 0)
    if missing > 0:
        verb = "are" if missing != 1 else "is"
        warnings.append(Finding(
            severity=FindingSeverity.HIGH,
            kind="missing_media_references",
            message=f"{_plural(missing, 'media reference')} {verb} missing from the package",
            impact="Questions may import with broken media in Canvas",
        ))

    if not questions:
        warnings.append(Finding(
            severity=FindingSeverity.HIGH,
            kind="no_questions",
            message="No questions found in file",
            impact="Nothing will be imported",
        ))

    return CompatibilityReport(
        score=calculate_compatibility_score(issues, warnings),
        compatible=not issues,
        issues=issues,
        warnings=warnings,
        recommendations=generate_recommendations(version, issues, warnings),
    )
