from __future__ import annotations

from lms_analyzer.models.documents import FormatVersion
from lms_analyzer.models.node import ListNode, attr, child, children, text
from lms_analyzer.parsers.qti_parser import detect_qti_version, local_name, looks_like_qti, parse_qti

QTI_12 = """<?xml version="1.0" encoding="UTF-8"?>
<questestinterop xmlns="http://www.imsglobal.org/xsd/ims_qtiasiv1p2">
  <assessment ident="A1" title="Quiz">
    <section ident="root_section">
      <item ident="q1" title="First"/>
    </section>
  </assessment>
</questestinterop>
"""

QTI_21 = """<assessmentItem xmlns="http://www.imsglobal.org/xsd/imsqti_v2p1" identifier="i1" title="Item">
  <itemBody><p>Pick <b>one</b></p></itemBody>
</assessmentItem>
"""


def test_version_detection_uses_content_not_extension():
    assert detect_qti_version(QTI_12) == FormatVersion.QTI_1_2
    assert detect_qti_version(QTI_21) == FormatVersion.QTI_2_1
    assert detect_qti_version("<unknown/>") == FormatVersion.QTI_2_1


def test_version_detection_prefers_qti_12_markers():
    mixed = "<questestinterop><!-- assessmentItem mentioned in a comment --></questestinterop>"
    assert detect_qti_version(mixed) == FormatVersion.QTI_1_2


def test_parse_qti_strips_namespaces_and_forces_plural_items():
    doc = parse_qti(QTI_12.encode("utf-8"), source_name="quiz.xml")
    assert doc.well_formed
    assert doc.parse_errors == []
    assert doc.format_version == FormatVersion.QTI_1_2
    assessment = child(child(doc.tree, "questestinterop"), "assessment")
    assert attr(assessment, "title") == "Quiz"
    section = child(assessment, "section")
    assert isinstance(section, ListNode)
    items = children(children(assessment, "section")[0], "item")
    assert [attr(item, "ident") for item in items] == ["q1"]


def test_parse_qti_keeps_mixed_text():
    doc = parse_qti(QTI_21)
    item = children(doc.tree, "assessmentItem")[0]
    paragraph = child(child(item, "itemBody"), "p")
    assert text(paragraph) == "Pick"
    assert text(child(paragraph, "b")) == "one"


def test_parse_qti_tolerates_bom():
    doc = parse_qti(b"\xef\xbb\xbf" + QTI_21.encode("utf-8"))
    assert doc.well_formed


def test_malformed_xml_is_reported_not_raised():
    doc = parse_qti("<questestinterop><item ident='q1'></questestinterop>", source_name="bad.xml")
    assert not doc.well_formed
    assert doc.tree is None
    assert doc.parse_errors[0].kind == "xml_syntax"
    assert doc.parse_errors[0].location.startswith("line 1")
    assert doc.format_version == FormatVersion.QTI_1_2


def test_empty_document():
    doc = parse_qti(b"   ")
    assert not doc.well_formed
    assert doc.parse_errors[0].kind == "empty_document"


def test_local_name_and_marker_sniffing():
    assert local_name("{http://example.com}item") == "item"
    assert local_name("qti:item") == "item"
    assert looks_like_qti("<assessmentTest identifier='t'/>")
    assert not looks_like_qti("<html><body/></html>")
