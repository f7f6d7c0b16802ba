from __future__ import annotations

import json
import logging
from typing import FrozenSet, Optional, Union

from lms_analyzer.models.documents import FormatVersion, ParsedDocument, ParseError
from lms_analyzer.models.node import MapNode, child, from_plain
from lms_analyzer.parsers.qti_parser import decode_text

logger = logging.getLogger(__name__)

HAR_ALWAYS_PLURAL: FrozenSet[str] = frozenset({"entries", "pages", "headers", "cookies"})


def looks_like_har(raw_text: str) -> bool:
    stripped = raw_text.lstrip("\ufeff \t\r\n")
    return stripped.startswith("{") and '"log"' in raw_text


def parse_har(raw: Union[bytes, str], source_name: Optional[str] = None) -> ParsedDocument:
    """Parse an HTTP Archive; JSON and structure errors are captured, not raised."""
    raw_text = decode_text(raw)
    if not raw_text.strip():
        return _failed(raw_text, source_name, ParseError(kind="empty_document", message="Document is empty"))
    try:
        data = json.loads(raw_text.lstrip("\ufeff"))
    except json.JSONDecodeError as exc:
        logger.debug("HAR JSON decode failed for %s: %s", source_name or "<capture>", exc)
        return _failed(
            raw_text,
            source_name,
            ParseError(
                kind="json_syntax",
                message=f"Invalid JSON: {exc.msg}",
                location=f"line {exc.lineno}, column {exc.colno}",
            ),
        )
    except RecursionError:
        logger.debug("HAR JSON nesting exceeds decoder depth for %s", source_name or "<capture>")
        return _failed(raw_text, source_name, ParseError(kind="json_syntax", message="Invalid JSON: nesting too deep"))

    tree = from_plain(data, HAR_ALWAYS_PLURAL)
    if not isinstance(tree, MapNode) or not isinstance(child(tree, "log"), MapNode):
        return ParsedDocument(
            format_version=FormatVersion.HAR,
            tree=tree,
            parse_errors=[ParseError(kind="missing_log", message="HAR document has no 'log' object", location="$.log")],
            well_formed=False,
            raw_text=raw_text,
            source_name=source_name,
        )
    return ParsedDocument(
        format_version=FormatVersion.HAR,
        tree=tree,
        parse_errors=[],
        well_formed=True,
        raw_text=raw_text,
        source_name=source_name,
    )


def _failed(raw_text: str, source_name: Optional[str], error: ParseError) -> ParsedDocument:
    return ParsedDocument(
        format_version=FormatVersion.HAR,
        tree=None,
        parse_errors=[error],
        well_formed=False,
        raw_text=raw_text,
        source_name=source_name,
    )
