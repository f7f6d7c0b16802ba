"""Question extraction for QTI 1.2 and 2.1 documents.

Items are collected into one flat, ordered list regardless of how deeply the
source nests its sections. Type classification runs in three steps:

1. explicit export metadata (``qtimetadatafield``), mapped to canonical names
2. structural inference from the response / interaction shape
3. ``unknown``
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from lms_analyzer.data.question_types import (
    INTERACTION_TYPES,
    METADATA_TYPE_LABELS,
    REFERENCED_ITEM,
    RESPONSE_TYPES_12,
    TRUE_FALSE_PAIRS,
    UNKNOWN_TYPE,
)
from lms_analyzer.knowledge.capability_catalog import CapabilityCatalog, default_catalog
from lms_analyzer.models.documents import FormatVersion, ParsedDocument
from lms_analyzer.models.entities import Question
from lms_analyzer.models.node import (
    ATTR_PREFIX,
    Leaf,
    Node,
    attr,
    child,
    children,
    find_all,
    first,
    has,
    iter_keys,
    iter_leaf_strings,
    text,
    walk,
)

DEFAULT_POINTS = 1.0

_MEDIA_KEYS = frozenset({"img", "audio", "video", "object", "matimage", "mataudio", "matvideo"})
_MEDIA_MARKUP = ("<img", "<audio", "<video")
_FEEDBACK_KEYS_21 = frozenset({"feedbackInline", "feedbackBlock"})


def extract_questions(doc: ParsedDocument, catalog: Optional[CapabilityCatalog] = None) -> List[Question]:
    catalog = catalog or default_catalog()
    questions: List[Question] = []
    if doc.tree is None:
        return questions
    if doc.format_version == FormatVersion.QTI_1_2:
        root = child(doc.tree, "questestinterop")
        if root is not None:
            _collect_items_12(root, questions, catalog, doc.source_name)
    elif doc.format_version == FormatVersion.QTI_2_1:
        _collect_items_21(doc.tree, questions, catalog, doc.source_name)
    return questions


def extract_metadata(doc: ParsedDocument, questions: Optional[List[Question]] = None) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "title": None,
        "identifier": None,
        "version": doc.format_version.value,
        "question_count": 0,
    }
    if doc.tree is None:
        return metadata
    if questions is None:
        questions = extract_questions(doc)
    metadata["question_count"] = len(questions)

    if doc.format_version == FormatVersion.QTI_1_2:
        qti = child(doc.tree, "questestinterop")
        target = first(qti, "assessment") or first(qti, "item")
        if target is not None:
            metadata["identifier"] = attr(target, "ident") or attr(target, "identifier")
            metadata["title"] = attr(target, "title") or _metadata_title_12(target)
    else:
        target = child(doc.tree, "assessmentTest") or first(doc.tree, "assessmentItem")
        if target is not None:
            metadata["identifier"] = attr(target, "identifier")
            metadata["title"] = attr(target, "title")
    return metadata


# -- QTI 1.2 -------------------------------------------------------------------


def _collect_items_12(container: Node, out: List[Question], catalog: CapabilityCatalog, source: Optional[str]) -> None:
    """Items in document order, descending through nested sections without a depth limit."""
    stack: List[Node] = [container]
    while stack:
        current = stack.pop()
        for item in children(current, "item"):
            out.append(_parse_item_12(item, catalog, source))
        nested = [sub for key in ("assessment", "objectbank", "section") for sub in children(current, key)]
        stack.extend(reversed(nested))


def _parse_item_12(item: Node, catalog: CapabilityCatalog, source: Optional[str]) -> Question:
    return Question(
        id=attr(item, "ident") or attr(item, "identifier"),
        title=attr(item, "title"),
        type=_detect_type_12(item, catalog),
        points=_points_12(item),
        has_feedback=_has_feedback_12(item),
        has_media=has_media(item),
        source_file=source,
    )


def _detect_type_12(item: Node, catalog: CapabilityCatalog) -> str:
    metadata_type = type_from_metadata(item, catalog)
    if metadata_type:
        return metadata_type

    presentation = first(item, "presentation")
    if presentation is None:
        return UNKNOWN_TYPE

    lids = find_all(presentation, "response_lid")
    if lids:
        lid = lids[0]
        if _is_true_false_12(lid):
            return "True/False"
        if (attr(lid, "rcardinality") or "").strip().lower() == "multiple":
            return "Multiple Answers"
        return "Multiple Choice"
    for key, question_type in RESPONSE_TYPES_12:
        if find_all(presentation, key):
            return question_type
    if find_all(presentation, "material"):
        return "Stimulus"
    return UNKNOWN_TYPE


def _is_true_false_12(lid: Node) -> bool:
    labels = find_all(lid, "response_label")
    if len(labels) != 2:
        return False
    idents = [(attr(label, "ident") or "").strip().lower() for label in labels]
    captions = [" ".join(text(m) for m in find_all(label, "mattext")).strip().lower() for label in labels]
    return is_true_false_pair(idents) or is_true_false_pair(captions)


def _points_12(item: Node) -> float:
    for processing in children(item, "resprocessing"):
        for outcomes in children(processing, "outcomes"):
            for decvar in children(outcomes, "decvar"):
                value = parse_points(attr(decvar, "maxvalue"))
                if value is not None:
                    return value
    return DEFAULT_POINTS


def _has_feedback_12(item: Node) -> bool:
    if has(item, "itemfeedback"):
        return True
    return any(find_all(processing, "displayfeedback") for processing in children(item, "resprocessing"))


def _metadata_title_12(target: Node) -> Optional[str]:
    for block in children(target, "qtimetadata"):
        for label, entry in _metadata_fields(block):
            if label.lower() in ("qmd_title", "title") and entry:
                return entry
    return None


# -- QTI 2.1 -------------------------------------------------------------------


def _collect_items_21(tree: Node, out: List[Question], catalog: CapabilityCatalog, source: Optional[str]) -> None:
    items = children(tree, "assessmentItem")
    if items:
        for item in items:
            out.append(_parse_item_21(item, catalog, source))
        return
    test = child(tree, "assessmentTest")
    for part in children(test, "testPart"):
        for section in children(part, "assessmentSection"):
            _collect_item_refs_21(section, out, source)


def _collect_item_refs_21(section: Node, out: List[Question], source: Optional[str]) -> None:
    stack: List[Node] = [section]
    while stack:
        current = stack.pop()
        for ref in children(current, "assessmentItemRef"):
            out.append(Question(
                id=attr(ref, "identifier"),
                type=REFERENCED_ITEM,
                points=DEFAULT_POINTS,
                href=attr(ref, "href"),
                source_file=source,
            ))
        stack.extend(reversed(children(current, "assessmentSection")))


def _parse_item_21(item: Node, catalog: CapabilityCatalog, source: Optional[str]) -> Question:
    return Question(
        id=attr(item, "identifier"),
        title=attr(item, "title"),
        type=_detect_type_21(item, catalog),
        points=_points_21(item),
        has_feedback=_has_feedback_21(item),
        has_media=has_media(item),
        source_file=source,
    )


def _detect_type_21(item: Node, catalog: CapabilityCatalog) -> str:
    metadata_type = type_from_metadata(item, catalog)
    if metadata_type:
        return metadata_type

    body = child(item, "itemBody")
    if body is None:
        return UNKNOWN_TYPE
    keys = set(iter_keys(body))
    for tag, question_type in INTERACTION_TYPES:
        if tag not in keys:
            continue
        if tag == "choiceInteraction":
            interaction = find_all(body, tag)[0]
            if _is_true_false_21(interaction):
                return "True/False"
            if _response_cardinality_21(item, attr(interaction, "responseIdentifier")) == "multiple":
                return "Multiple Answers"
        return question_type
    return UNKNOWN_TYPE


def _is_true_false_21(interaction: Node) -> bool:
    choices = find_all(interaction, "simpleChoice")
    if len(choices) != 2:
        return False
    idents = [(attr(choice, "identifier") or "").strip().lower() for choice in choices]
    captions = [plain_text(choice).strip().lower() for choice in choices]
    return is_true_false_pair(idents) or is_true_false_pair(captions)


def _response_cardinality_21(item: Node, response_id: Optional[str]) -> str:
    declarations = children(item, "responseDeclaration")
    for declaration in declarations:
        if response_id and attr(declaration, "identifier") == response_id:
            return (attr(declaration, "cardinality") or "").strip().lower()
    if len(declarations) == 1:
        return (attr(declarations[0], "cardinality") or "").strip().lower()
    return ""


def _points_21(item: Node) -> float:
    normal_maximum = None
    for declaration in children(item, "outcomeDeclaration"):
        if (attr(declaration, "identifier") or "").upper() == "MAXSCORE":
            for value in find_all(child(declaration, "defaultValue"), "value"):
                parsed = parse_points(text(value))
                if parsed is not None:
                    return parsed
        if normal_maximum is None:
            normal_maximum = parse_points(attr(declaration, "normalMaximum"))
    return normal_maximum if normal_maximum is not None else DEFAULT_POINTS


def _has_feedback_21(item: Node) -> bool:
    if has(item, "modalFeedback"):
        return True
    if _FEEDBACK_KEYS_21 & set(iter_keys(child(item, "itemBody"))):
        return True
    processing = child(item, "responseProcessing")
    if processing is None:
        return False
    if any("feedback" in key.lower() for key in iter_keys(processing)):
        return True
    return any("feedback" in value.lower() for value in iter_leaf_strings(processing))


# -- shared --------------------------------------------------------------------


def type_from_metadata(item: Node, catalog: CapabilityCatalog) -> Optional[str]:
    for label, entry in _metadata_fields(item):
        if label.lower() in METADATA_TYPE_LABELS and entry:
            return catalog.canonical_type(entry)
    return None


def _metadata_fields(node: Node) -> List[tuple]:
    fields = []
    for field in find_all(node, "qtimetadatafield"):
        label = text(child(field, "fieldlabel")).strip()
        entry = text(child(field, "fieldentry")).strip()
        fields.append((label, entry))
    return fields


def is_true_false_pair(labels: List[str]) -> bool:
    if len(labels) != 2:
        return False
    label_set = set(labels)
    return any(a in label_set and b in label_set for a, b in TRUE_FALSE_PAIRS)


def has_media(node: Node) -> bool:
    for key, current in walk(node):
        if key in _MEDIA_KEYS:
            return True
        if isinstance(current, Leaf) and isinstance(current.value, str):
            lowered = current.value.lower()
            if any(marker in lowered for marker in _MEDIA_MARKUP):
                return True
    return False


def plain_text(node: Optional[Node]) -> str:
    """All element text in a subtree, attributes excluded."""
    parts = []
    for key, current in walk(node):
        if key is not None and key.startswith(ATTR_PREFIX):
            continue
        if isinstance(current, Leaf) and current.value not in (None, ""):
            parts.append(str(current.value))
    return " ".join(parts)


def parse_points(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        points = float(str(value).strip())
    except ValueError:
        return None
    if math.isnan(points) or math.isinf(points):
        return None
    return max(points, 0.0)
