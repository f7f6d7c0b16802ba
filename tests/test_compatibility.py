from __future__ import annotations

from lms_analyzer.analyzers.compatibility import (
    READY_FOR_IMPORT,
    calculate_compatibility_score,
    check_compatibility,
)
from lms_analyzer.analyzers.structure_validator import ValidationResult
from lms_analyzer.models.documents import FormatVersion
from lms_analyzer.models.entities import Question
from lms_analyzer.models.report import Finding, FindingSeverity


def _questions(*types):
    return [Question(id=f"q{i}", type=t) for i, t in enumerate(types)]


def _kinds(findings):
    return [finding.kind for finding in findings]


def test_supported_qti_21_is_ready_for_import():
    report = check_compatibility(_questions("Multiple Choice", "Essay"), FormatVersion.QTI_2_1)
    assert report.score == 100
    assert report.compatible
    assert report.issues == [] and report.warnings == []
    assert report.recommendations == [READY_FOR_IMPORT]


def test_no_questions_is_a_high_warning():
    report = check_compatibility([], FormatVersion.QTI_2_1)
    assert _kinds(report.warnings) == ["no_questions"]
    assert report.warnings[0].severity == FindingSeverity.HIGH
    assert report.score == 90
    assert report.compatible


def test_qti_12_warns_and_recommends_upgrade():
    report = check_compatibility(_questions("True/False"), FormatVersion.QTI_1_2)
    assert _kinds(report.warnings) == ["qti_version"]
    assert report.score == 95
    assert report.recommendations[0].startswith("Consider converting to QTI 2.1")


def test_unsupported_and_limited_types():
    report = check_compatibility(
        _questions("Inline Choice", "Inline Choice", "Hotspot", "Ordering"),
        FormatVersion.QTI_2_1,
    )
    assert _kinds(report.issues) == ["unsupported_interaction"]
    assert "(2 questions)" in report.issues[0].message
    assert _kinds(report.warnings) == ["limited_interaction", "new_quizzes_only_interaction"]
    assert not report.compatible
    assert report.score == 100 - 20 - 5 - 5


def test_media_findings():
    media = {"external": 1, "missing": 2}
    report = check_compatibility(_questions("Essay"), FormatVersion.QTI_2_1, media_summary=media)
    assert _kinds(report.warnings) == ["external_references", "missing_media_references"]
    assert report.warnings[1].message == "2 media references are missing from the package"
    assert report.score == 100 - 5 - 10
    assert report.compatible


def test_invalid_structure_is_an_issue():
    validation = ValidationResult(valid=False, errors=[{"element": "root", "message": "Missing root"}])
    report = check_compatibility([], FormatVersion.QTI_2_1, validation=validation)
    assert _kinds(report.issues) == ["invalid_structure"]
    assert "Missing root" in report.issues[0].message
    assert not report.compatible


def test_score_is_bounded_and_monotonic():
    issue = Finding(severity=FindingSeverity.HIGH, kind="x", message="x")
    warning = Finding(severity=FindingSeverity.LOW, kind="y", message="y")
    previous = calculate_compatibility_score([], [])
    assert previous == 100
    for count in range(1, 8):
        score = calculate_compatibility_score([issue] * count, [warning])
        assert 0 <= score <= previous
        previous = score
    assert previous == 0


def test_reports_do_not_share_state():
    first = check_compatibility(_questions("Inline Choice"), FormatVersion.QTI_2_1)
    second = check_compatibility(_questions("Essay"), FormatVersion.QTI_2_1)
    assert first.issues and not second.issues
    assert second.score == 100
