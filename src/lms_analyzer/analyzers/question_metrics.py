from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from lms_analyzer.data.question_types import UNKNOWN_TYPE
from lms_analyzer.knowledge.capability_catalog import CapabilityCatalog, default_catalog
from lms_analyzer.models.documents import ParsedDocument
from lms_analyzer.models.entities import Question
from lms_analyzer.models.node import Leaf, walk

POINT_BUCKETS = ("0", "1-5", "6-10", "11+")

CONTENT_FLAGS = (
    "has_images",
    "has_audio",
    "has_video",
    "has_external_links",
    "has_math",
    "has_tables",
    "has_formatted_text",
)


def _points_bucket(points: float) -> str:
    if points == 0:
        return "0"
    if points <= 5:
        return "1-5"
    if points <= 10:
        return "6-10"
    return "11+"


def _points_key(points: float) -> str:
    return str(int(points)) if float(points).is_integer() else str(points)


def summarize_questions(questions: List[Question]) -> Dict[str, Any]:
    by_type: Dict[str, int] = {}
    by_points = {bucket: 0 for bucket in POINT_BUCKETS}
    with_feedback = 0
    with_media = 0
    for question in questions:
        question_type = question.type or UNKNOWN_TYPE
        by_type[question_type] = by_type.get(question_type, 0) + 1
        by_points[_points_bucket(question.points)] += 1
        with_feedback += int(question.has_feedback)
        with_media += int(question.has_media)
    return {
        "total": len(questions),
        "by_type": by_type,
        "by_points": by_points,
        "with_feedback": with_feedback,
        "with_media": with_media,
    }


def interaction_types(questions: List[Question], catalog: Optional[CapabilityCatalog] = None) -> Dict[str, Any]:
    catalog = catalog or default_catalog()
    types: Dict[str, Dict[str, Any]] = {}
    for question in questions:
        question_type = question.type or UNKNOWN_TYPE
        entry = types.setdefault(question_type, {"count": 0, "support": catalog.support_level(question_type)})
        entry["count"] += 1
    return {"total": len(questions), "types": types}


def scoring_analysis(questions: List[Question]) -> Dict[str, Any]:
    points = [question.points for question in questions]
    distribution: Dict[str, int] = {}
    for value in points:
        key = _points_key(value)
        distribution[key] = distribution.get(key, 0) + 1
    total = sum(points)
    return {
        "total_points": total,
        "average_points": total / len(points) if points else 0,
        "min_points": min(points) if points else 0,
        "max_points": max(points) if points else 0,
        "point_distribution": distribution,
    }


def analyze_content(doc: ParsedDocument) -> Dict[str, bool]:
    """Flag the kinds of rich content present anywhere in the document."""
    keys = set()
    fragments: List[str] = []
    for key, node in walk(doc.tree):
        if key is not None:
            keys.add(key.lower())
        if key is not None and key.endswith("schemaLocation"):
            continue
        if isinstance(node, Leaf) and isinstance(node.value, str):
            fragments.append(node.value)
    body = "\n".join(fragments)
    lowered = body.lower()
    return {
        "has_images": bool(keys & {"img", "matimage"}) or "<img" in lowered,
        "has_audio": bool(keys & {"audio", "mataudio"}) or "<audio" in lowered,
        "has_video": bool(keys & {"video", "matvideo"}) or "<video" in lowered,
        "has_external_links": "http://" in lowered or "https://" in lowered,
        "has_math": "math" in keys or "math>" in lowered or "mathml" in lowered or "latex" in lowered,
        "has_tables": "table" in keys or "<table" in lowered,
        "has_formatted_text": bool(keys & {"p", "div"}) or "<p>" in lowered or "<div>" in lowered,
    }


def merge_content(results: Iterable[Dict[str, bool]]) -> Dict[str, bool]:
    merged = {flag: False for flag in CONTENT_FLAGS}
    for result in results:
        for flag in CONTENT_FLAGS:
            merged[flag] = merged[flag] or bool(result.get(flag))
    return merged
