from __future__ import annotations

from lms_analyzer.analyzers.question_metrics import (
    CONTENT_FLAGS,
    analyze_content,
    interaction_types,
    merge_content,
    scoring_analysis,
    summarize_questions,
)
from lms_analyzer.models.entities import Question
from lms_analyzer.parsers.qti_parser import parse_qti


def _question(qid, qtype="Multiple Choice", points=1.0, feedback=False, media=False):
    return Question(id=qid, type=qtype, points=points, has_feedback=feedback, has_media=media)


def test_summary_buckets_points_and_counts_flags():
    questions = [
        _question("a", points=0),
        _question("b", "Essay", points=2, feedback=True),
        _question("c", points=7, media=True),
        _question("d", "Essay", points=12),
    ]
    summary = summarize_questions(questions)
    assert summary["total"] == 4
    assert summary["by_type"] == {"Multiple Choice": 2, "Essay": 2}
    assert summary["by_points"] == {"0": 1, "1-5": 1, "6-10": 1, "11+": 1}
    assert summary["with_feedback"] == 1
    assert summary["with_media"] == 1


def test_scoring_analysis():
    scoring = scoring_analysis([_question("a", points=1), _question("b", points=2), _question("c", points=2.5)])
    assert scoring["total_points"] == 5.5
    assert scoring["average_points"] == 5.5 / 3
    assert scoring["min_points"] == 1
    assert scoring["max_points"] == 2.5
    assert scoring["point_distribution"] == {"1": 1, "2": 1, "2.5": 1}


def test_scoring_analysis_empty():
    scoring = scoring_analysis([])
    assert scoring["total_points"] == 0
    assert scoring["average_points"] == 0
    assert scoring["point_distribution"] == {}


def test_interaction_types_attach_support_levels():
    result = interaction_types([_question("a"), _question("b", "Hotspot"), _question("c", "Ordering"), _question("d", "Mystery")])
    assert result["total"] == 4
    assert result["types"]["Multiple Choice"] == {"count": 1, "support": "full"}
    assert result["types"]["Hotspot"]["support"] == "limited"
    assert result["types"]["Ordering"]["support"] == "new_quizzes_only"
    assert result["types"]["Mystery"]["support"] == "unsupported"


def test_content_analysis_flags_rich_content():
    raw = """<assessmentItem identifier="x">
      <itemBody>
        <p>See <a href="https://example.com">this</a></p>
        <table><tr><td>1</td></tr></table>
        <math><mi>x</mi></math>
        <img src="a.png"/>
      </itemBody>
    </assessmentItem>"""
    flags = analyze_content(parse_qti(raw))
    assert flags["has_images"]
    assert flags["has_external_links"]
    assert flags["has_math"]
    assert flags["has_tables"]
    assert flags["has_formatted_text"]
    assert not flags["has_audio"]
    assert not flags["has_video"]


def test_content_analysis_ignores_schema_locations():
    raw = """<assessmentItem xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
      xsi:schemaLocation="http://www.imsglobal.org/xsd/imsqti_v2p1 http://www.imsglobal.org/xsd/qti/qtiv2p1/imsqti_v2p1.xsd"
      identifier="x"><itemBody><textEntryInteraction responseIdentifier="R"/></itemBody></assessmentItem>"""
    flags = analyze_content(parse_qti(raw))
    assert not flags["has_external_links"]


def test_content_analysis_reads_escaped_html():
    raw = "<questestinterop><item><mattext>&lt;p&gt;Listen &lt;audio src='a.mp3'&gt;&lt;/audio&gt;&lt;/p&gt;</mattext></item></questestinterop>"
    flags = analyze_content(parse_qti(raw))
    assert flags["has_audio"]
    assert flags["has_formatted_text"]


def test_merge_content_is_a_union():
    merged = merge_content([{"has_images": True}, {"has_tables": True}, {}])
    assert set(merged) == set(CONTENT_FLAGS)
    assert merged["has_images"] and merged["has_tables"]
    assert not merged["has_math"]
