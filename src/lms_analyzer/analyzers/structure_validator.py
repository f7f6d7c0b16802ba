from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from lms_analyzer.models.documents import FormatVersion, ParsedDocument
from lms_analyzer.models.node import child, has

_QTI_12_CONTENT_KEYS = ("item", "section", "assessment", "objectbank")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[Dict[str, str]] = field(default_factory=list)


def validate_document(doc: ParsedDocument) -> ValidationResult:
    """Check the document carries exactly one recognized root for its version."""
    errors: List[Dict[str, str]] = []
    warnings: List[Dict[str, str]] = []
    tree = doc.tree

    if doc.format_version == FormatVersion.QTI_1_2:
        root = child(tree, "questestinterop")
        if root is None:
            errors.append({
                "element": "root",
                "message": "Missing questestinterop root element for QTI 1.2",
            })
        elif not any(has(root, key) for key in _QTI_12_CONTENT_KEYS):
            warnings.append({
                "element": "questestinterop",
                "message": "questestinterop contains no assessment, section, item or objectbank",
            })
    elif doc.format_version == FormatVersion.QTI_2_1:
        if not has(tree, "assessmentTest") and not has(tree, "assessmentItem"):
            errors.append({
                "element": "root",
                "message": "Missing assessmentTest or assessmentItem root element for QTI 2.1",
            })
    else:
        errors.append({
            "element": "root",
            "message": f"Unsupported document version for assessment validation: {doc.format_version.value}",
        })

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)
