from __future__ import annotations

from lms_analyzer.analyzers.question_extractor import (
    extract_metadata,
    extract_questions,
    is_true_false_pair,
    parse_points,
    plain_text,
)
from lms_analyzer.data.question_types import REFERENCED_ITEM, UNKNOWN_TYPE
from lms_analyzer.models.node import children
from lms_analyzer.parsers.qti_parser import parse_qti

QTI_12_QUIZ = """<?xml version="1.0" encoding="UTF-8"?>
<questestinterop xmlns="http://www.imsglobal.org/xsd/ims_qtiasiv1p2">
  <assessment ident="A1" title="Unit Quiz">
    <section ident="root_section">
      <item ident="q1" title="Capital">
        <itemmetadata>
          <qtimetadata>
            <qtimetadatafield><fieldlabel>question_type</fieldlabel><fieldentry>multiple_choice_question</fieldentry></qtimetadatafield>
            <qtimetadatafield><fieldlabel>points_possible</fieldlabel><fieldentry>2</fieldentry></qtimetadatafield>
          </qtimetadata>
        </itemmetadata>
        <presentation>
          <material><mattext texttype="text/html">&lt;p&gt;Capital of France?&lt;/p&gt;</mattext></material>
          <response_lid ident="response1" rcardinality="Single">
            <render_choice>
              <response_label ident="a"><material><mattext>Paris</mattext></material></response_label>
              <response_label ident="b"><material><mattext>Rome</mattext></material></response_label>
            </render_choice>
          </response_lid>
        </presentation>
        <resprocessing>
          <outcomes><decvar maxvalue="2" minvalue="0" varname="SCORE" vartype="Decimal"/></outcomes>
          <respcondition><displayfeedback feedbacktype="Response" linkrefid="general_fb"/></respcondition>
        </resprocessing>
      </item>
      <section ident="nested">
        <item ident="q2">
          <presentation>
            <response_lid ident="response1">
              <render_choice>
                <response_label ident="1001"><material><mattext>True</mattext></material></response_label>
                <response_label ident="1002"><material><mattext>False</mattext></material></response_label>
              </render_choice>
            </response_lid>
          </presentation>
        </item>
        <item ident="q3">
          <presentation>
            <material><matimage uri="images/pic.png"/></material>
            <response_str ident="r3"/>
          </presentation>
          <resprocessing><outcomes><decvar maxvalue="-5"/></outcomes></resprocessing>
        </item>
      </section>
    </section>
  </assessment>
</questestinterop>
"""

QTI_12_SHAPES = """<questestinterop>
  <objectbank ident="bank">
    <item ident="multi">
      <presentation>
        <response_lid ident="r" rcardinality="Multiple">
          <render_choice>
            <response_label ident="a"/><response_label ident="b"/><response_label ident="c"/>
          </render_choice>
        </response_lid>
      </presentation>
    </item>
    <item ident="text"><presentation><material><mattext>Read this first</mattext></material></presentation></item>
    <item ident="empty"/>
  </objectbank>
</questestinterop>
"""

QTI_21_ITEM = """<assessmentItem xmlns="http://www.imsglobal.org/xsd/imsqti_v2p1" identifier="i1" title="Pick many">
  <responseDeclaration identifier="RESPONSE" cardinality="multiple" baseType="identifier"/>
  <outcomeDeclaration identifier="SCORE" cardinality="single" baseType="float" normalMaximum="4"/>
  <outcomeDeclaration identifier="MAXSCORE" cardinality="single" baseType="float">
    <defaultValue><value>3</value></defaultValue>
  </outcomeDeclaration>
  <itemBody>
    <choiceInteraction responseIdentifier="RESPONSE" maxChoices="0">
      <simpleChoice identifier="A">One</simpleChoice>
      <simpleChoice identifier="B">Two</simpleChoice>
      <simpleChoice identifier="C">Three</simpleChoice>
    </choiceInteraction>
    <img src="media/chart.png"/>
  </itemBody>
  <modalFeedback outcomeIdentifier="FEEDBACK" identifier="correct" showHide="show">Well done</modalFeedback>
</assessmentItem>
"""

QTI_21_TRUE_FALSE = """<assessmentItem identifier="tf" title="Sky">
  <responseDeclaration identifier="RESPONSE" cardinality="single"/>
  <outcomeDeclaration identifier="SCORE" normalMaximum="5"/>
  <itemBody>
    <choiceInteraction responseIdentifier="RESPONSE" maxChoices="1">
      <simpleChoice identifier="true">Yes it is</simpleChoice>
      <simpleChoice identifier="false">No it is not</simpleChoice>
    </choiceInteraction>
  </itemBody>
</assessmentItem>
"""

QTI_21_TEST = """<assessmentTest xmlns="http://www.imsglobal.org/xsd/imsqti_v2p1" identifier="T1" title="Final">
  <testPart identifier="P1" navigationMode="linear" submissionMode="individual">
    <assessmentSection identifier="S1" title="One" visible="true">
      <assessmentItemRef identifier="ref1" href="items/one.xml"/>
      <assessmentSection identifier="S2" title="Two" visible="true">
        <assessmentItemRef identifier="ref2" href="items/two.xml"/>
      </assessmentSection>
    </assessmentSection>
  </testPart>
</assessmentTest>
"""


def test_qti_12_items_are_flattened_in_document_order():
    questions = extract_questions(parse_qti(QTI_12_QUIZ, source_name="quiz.xml"))
    assert [q.id for q in questions] == ["q1", "q2", "q3"]
    assert all(q.source_file == "quiz.xml" for q in questions)


def test_qti_12_metadata_type_wins_over_structure():
    q1 = extract_questions(parse_qti(QTI_12_QUIZ))[0]
    assert q1.type == "Multiple Choice"
    assert q1.title == "Capital"
    assert q1.points == 2.0
    assert q1.has_feedback
    assert not q1.has_media


def test_qti_12_true_false_from_choice_captions():
    q2 = extract_questions(parse_qti(QTI_12_QUIZ))[1]
    assert q2.type == "True/False"
    assert q2.points == 1.0
    assert not q2.has_feedback


def test_qti_12_text_response_with_image_and_negative_points():
    q3 = extract_questions(parse_qti(QTI_12_QUIZ))[2]
    assert q3.type == "Fill in Blank"
    assert q3.has_media
    assert q3.points == 0.0


def test_qti_12_structural_fallbacks():
    by_id = {q.id: q for q in extract_questions(parse_qti(QTI_12_SHAPES))}
    assert by_id["multi"].type == "Multiple Answers"
    assert by_id["text"].type == "Stimulus"
    assert by_id["empty"].type == UNKNOWN_TYPE


def test_qti_12_metadata():
    doc = parse_qti(QTI_12_QUIZ)
    metadata = extract_metadata(doc)
    assert metadata == {"title": "Unit Quiz", "identifier": "A1", "version": "1.2", "question_count": 3}


def test_qti_21_multiple_response_item():
    [question] = extract_questions(parse_qti(QTI_21_ITEM))
    assert question.id == "i1"
    assert question.type == "Multiple Answers"
    assert question.points == 3.0
    assert question.has_feedback
    assert question.has_media


def test_qti_21_true_false_and_normal_maximum():
    [question] = extract_questions(parse_qti(QTI_21_TRUE_FALSE))
    assert question.type == "True/False"
    assert question.points == 5.0
    assert not question.has_feedback


def test_qti_21_feedback_inside_response_processing():
    raw = QTI_21_TRUE_FALSE.replace(
        "</itemBody>",
        "</itemBody><responseProcessing><setOutcomeValue identifier=\"FEEDBACK\"/></responseProcessing>",
    )
    [question] = extract_questions(parse_qti(raw))
    assert question.has_feedback


def test_qti_21_interaction_mapping():
    raw = """<assessmentItem identifier="e1"><itemBody><div><extendedTextInteraction responseIdentifier="R"/></div></itemBody></assessmentItem>"""
    [question] = extract_questions(parse_qti(raw))
    assert question.type == "Essay"


def test_qti_21_test_references_nested_sections():
    doc = parse_qti(QTI_21_TEST)
    questions = extract_questions(doc)
    assert [(q.id, q.href, q.type) for q in questions] == [
        ("ref1", "items/one.xml", REFERENCED_ITEM),
        ("ref2", "items/two.xml", REFERENCED_ITEM),
    ]
    metadata = extract_metadata(doc, questions)
    assert metadata["title"] == "Final"
    assert metadata["identifier"] == "T1"
    assert metadata["question_count"] == 2


def test_qti_12_items_inside_deeply_nested_sections():
    depth = 3000
    raw = (
        "<questestinterop><assessment ident='A'>"
        + "<section>" * depth
        + "<item ident='deep'/>"
        + "</section>" * depth
        + "<section><item ident='after'/></section>"
        + "</assessment></questestinterop>"
    )
    doc = parse_qti(raw)
    assert doc.well_formed
    assert [q.id for q in extract_questions(doc)] == ["deep", "after"]


def test_qti_21_item_refs_inside_deeply_nested_sections():
    depth = 3000
    raw = (
        "<assessmentTest identifier='T'><testPart identifier='P'>"
        + "<assessmentSection identifier='s'>" * depth
        + "<assessmentItemRef identifier='r1' href='items/r1.xml'/>"
        + "</assessmentSection>" * depth
        + "</testPart></assessmentTest>"
    )
    questions = extract_questions(parse_qti(raw))
    assert [(q.id, q.href) for q in questions] == [("r1", "items/r1.xml")]


def test_malformed_document_yields_no_questions():
    doc = parse_qti("<questestinterop><item ident='q1'>")
    assert extract_questions(doc) == []
    assert extract_metadata(doc)["question_count"] == 0


def test_parse_points():
    assert parse_points("2.5") == 2.5
    assert parse_points(" 4 ") == 4.0
    assert parse_points("-1") == 0.0
    assert parse_points("nan") is None
    assert parse_points("inf") is None
    assert parse_points("ten") is None
    assert parse_points(None) is None


def test_true_false_pairs_and_plain_text():
    assert is_true_false_pair(["false", "true"])
    assert is_true_false_pair(["yes", "no"])
    assert not is_true_false_pair(["true", "maybe"])
    assert not is_true_false_pair(["true", "false", "other"])
    doc = parse_qti("<assessmentItem identifier='x'><div><p>Hello</p><p>world</p></div></assessmentItem>")
    [item] = children(doc.tree, "assessmentItem")
    assert plain_text(item) == "Hello world"
