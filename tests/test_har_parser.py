from __future__ import annotations

import json

from lms_analyzer.models.documents import FormatVersion
from lms_analyzer.models.node import ListNode, child
from lms_analyzer.parsers.har_parser import looks_like_har, parse_har


def test_parse_har_normalizes_single_entry_to_list():
    raw = json.dumps({"log": {"entries": {"request": {"url": "https://a.test/"}}}})
    doc = parse_har(raw)
    assert doc.well_formed
    assert doc.format_version == FormatVersion.HAR
    assert isinstance(child(child(doc.tree, "log"), "entries"), ListNode)


def test_parse_har_reports_json_syntax_errors():
    doc = parse_har('{"log": {"entries": [}')
    assert not doc.well_formed
    assert doc.tree is None
    assert doc.parse_errors[0].kind == "json_syntax"
    assert "line 1" in doc.parse_errors[0].location


def test_parse_har_without_log_keeps_tree():
    doc = parse_har('{"entries": []}')
    assert not doc.well_formed
    assert doc.tree is not None
    assert doc.parse_errors[0].kind == "missing_log"


def test_parse_har_accepts_bom_prefixed_bytes():
    doc = parse_har(b'\xef\xbb\xbf{"log": {"entries": []}}')
    assert doc.well_formed


def test_looks_like_har():
    assert looks_like_har('\ufeff  {"log": {}}')
    assert not looks_like_har("<questestinterop/>")
    assert not looks_like_har('["log"]')


def test_parse_har_reports_nesting_too_deep_for_decoder():
    doc = parse_har('{"log": {"entries": ' + "[" * 100000)
    assert not doc.well_formed
    assert doc.tree is None
    assert doc.parse_errors[0].kind == "json_syntax"


def test_parse_har_keeps_deep_but_decodable_json():
    raw = '{"log": {"entries": [], "comment": ' + "[" * 200 + "]" * 200 + "}}"
    doc = parse_har(raw)
    assert doc.well_formed
    assert child(child(doc.tree, "log"), "entries") == ListNode(())
