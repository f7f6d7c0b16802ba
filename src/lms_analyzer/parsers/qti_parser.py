from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from lms_analyzer.models.documents import FormatVersion, ParsedDocument, ParseError
from lms_analyzer.models.node import ATTR_PREFIX, TEXT_KEY, Leaf, ListNode, MapNode, Node

logger = logging.getLogger(__name__)

QTI_ALWAYS_PLURAL: FrozenSet[str] = frozenset({
    "item",
    "section",
    "assessmentItem",
    "choice",
    "simpleChoice",
    "interaction",
})

_QTI_12_MARKERS = (
    "questestinterop",
    "ims_qtiasiv1p2",
    "//www.imsglobal.org/xsd/ims_qtiasiv1p2",
)
_QTI_21_MARKERS = (
    "assessmentTest",
    "assessmentItem",
    "imsqti_v2p1",
    "//www.imsglobal.org/xsd/imsqti_v2p1",
)

# Substrings that mark a document as assessment-bearing.
QTI_ROOT_MARKERS = ("<questestinterop", "<assessmentTest", "<assessmentItem", "imsqti")


def decode_text(raw: Union[bytes, str]) -> str:
    if isinstance(raw, str):
        return raw
    return raw.decode("utf-8-sig", errors="replace")


def detect_qti_version(raw_text: str) -> FormatVersion:
    """Version from content signatures: 1.2 markers win, otherwise 2.1."""
    if any(marker in raw_text for marker in _QTI_12_MARKERS):
        return FormatVersion.QTI_1_2
    if any(marker in raw_text for marker in _QTI_21_MARKERS):
        return FormatVersion.QTI_2_1
    return FormatVersion.QTI_2_1


def looks_like_qti(raw_text: str) -> bool:
    return any(marker in raw_text for marker in QTI_ROOT_MARKERS)


def local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[-1]
    if ":" in tag:
        return tag.split(":", 1)[1]
    return tag


def element_to_node(element: ET.Element, always_plural: FrozenSet[str] = QTI_ALWAYS_PLURAL) -> Node:
    """Convert an element into a node, grouping repeated children under one key.

    Elements are converted bottom-up from an explicit stack, so deeply nested
    sections do not run into the interpreter's recursion limit.
    """
    converted: Dict[int, Node] = {}
    stack: List[Tuple[ET.Element, bool]] = [(element, False)]
    while stack:
        current, expanded = stack.pop()
        subs = [sub for sub in current if isinstance(sub.tag, str)]
        if not expanded:
            stack.append((current, True))
            stack.extend((sub, False) for sub in reversed(subs))
            continue
        converted[id(current)] = _build_node(
            current,
            [(local_name(sub.tag), converted.pop(id(sub))) for sub in subs],
            always_plural,
        )
    return converted[id(element)]


def _build_node(element: ET.Element, members: List[Tuple[str, Node]], always_plural: FrozenSet[str]) -> Node:
    attributes = {f"{ATTR_PREFIX}{local_name(name)}": Leaf(value) for name, value in element.attrib.items()}
    grouped: Dict[str, List[Node]] = {}
    for name, node in members:
        grouped.setdefault(name, []).append(node)

    content = _collect_text(element)
    if not attributes and not grouped:
        return Leaf(content if content else "")

    fields: Dict[str, Node] = dict(attributes)
    for name, nodes in grouped.items():
        if len(nodes) == 1 and name not in always_plural:
            fields[name] = nodes[0]
        else:
            fields[name] = ListNode(tuple(nodes))
    if content:
        fields[TEXT_KEY] = Leaf(content)
    return MapNode(fields)


def _collect_text(element: ET.Element) -> str:
    parts = [element.text or ""]
    parts.extend(sub.tail or "" for sub in element)
    return "".join(parts).strip()


def parse_qti(raw: Union[bytes, str], source_name: Optional[str] = None) -> ParsedDocument:
    """Parse a QTI document; malformed markup is reported, never raised."""
    raw_text = decode_text(raw)
    version = detect_qti_version(raw_text)
    if not raw_text.strip():
        return ParsedDocument(
            format_version=version,
            tree=None,
            parse_errors=[ParseError(kind="empty_document", message="Document is empty")],
            well_formed=False,
            raw_text=raw_text,
            source_name=source_name,
        )
    try:
        root = ET.fromstring(raw_text)
    except ET.ParseError as exc:
        line, column = getattr(exc, "position", (None, None))
        location = f"line {line}, column {column}" if line is not None else None
        logger.debug("XML parse failed for %s: %s", source_name or "<document>", exc)
        return ParsedDocument(
            format_version=version,
            tree=None,
            parse_errors=[ParseError(kind="xml_syntax", message=f"Invalid XML: {exc}", location=location)],
            well_formed=False,
            raw_text=raw_text,
            source_name=source_name,
        )

    root_name = local_name(root.tag)
    root_node = element_to_node(root)
    if root_name in QTI_ALWAYS_PLURAL and not isinstance(root_node, ListNode):
        root_node = ListNode((root_node,))
    return ParsedDocument(
        format_version=version,
        tree=MapNode({root_name: root_node}),
        parse_errors=[],
        well_formed=True,
        raw_text=raw_text,
        source_name=source_name,
    )
