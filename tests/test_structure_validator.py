from __future__ import annotations

from lms_analyzer.analyzers.structure_validator import validate_document
from lms_analyzer.parsers.har_parser import parse_har
from lms_analyzer.parsers.qti_parser import parse_qti


def test_qti_12_with_items_is_valid():
    result = validate_document(parse_qti("<questestinterop><item ident='q1'/></questestinterop>"))
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_empty_questestinterop_warns():
    result = validate_document(parse_qti("<questestinterop><comment>x</comment></questestinterop>"))
    assert result.valid
    assert result.warnings[0]["element"] == "questestinterop"


def test_qti_21_requires_known_root():
    assert validate_document(parse_qti("<assessmentTest identifier='t'/>")).valid
    result = validate_document(parse_qti("<imsqti_v2p1_wrapper/>"))
    assert not result.valid
    assert result.errors[0]["element"] == "root"


def test_malformed_document_is_invalid():
    result = validate_document(parse_qti("<questestinterop><item>"))
    assert not result.valid
    assert "questestinterop" in result.errors[0]["message"]


def test_capture_is_not_an_assessment():
    result = validate_document(parse_har('{"log": {"entries": []}}'))
    assert not result.valid
    assert "har" in result.errors[0]["message"]
