"""Question type vocabulary used when classifying assessment items.

Canonical names follow the quiz engine's own labels so that reports read the
same way the import screen does.
"""
from __future__ import annotations

from typing import Dict, FrozenSet, List, Tuple

UNKNOWN_TYPE = "unknown"
REFERENCED_ITEM = "Referenced Item"

# Export metadata value -> canonical type name.
QUESTION_TYPE_ALIASES: Dict[str, str] = {
    "multiple_choice_question": "Multiple Choice",
    "multiple_answers_question": "Multiple Answers",
    "true_false_question": "True/False",
    "short_answer_question": "Short Answer",
    "essay_question": "Essay",
    "file_upload_question": "File Upload",
    "matching_question": "Matching",
    "numerical_question": "Numerical",
    "calculated_question": "Formula",
    "formula_question": "Formula",
    "fill_in_multiple_blanks_question": "Fill in Multiple Blanks",
    "multiple_dropdowns_question": "Multiple Dropdowns",
    "categorization_question": "Categorization",
    "hot_spot_question": "Hotspot",
    "hotspot_question": "Hotspot",
    "text_only_question": "Stimulus",
    "stimulus_question": "Stimulus",
    "ordering_question": "Ordering",
}

METADATA_TYPE_LABELS: FrozenSet[str] = frozenset({"question_type", "qmd_question_type", "cc_profile"})

FULLY_SUPPORTED: FrozenSet[str] = frozenset({
    "Multiple Choice",
    "True/False",
    "Fill in Blank",
    "Fill in Multiple Blanks",
    "Multiple Dropdowns",
    "Short Answer",
    "Essay",
    "Matching",
    "Multiple Answers",
    "Numerical",
    "Calculated",
    "Formula",
})

LIMITED_SUPPORT: FrozenSet[str] = frozenset({"Hotspot", "File Upload", "Stimulus"})

NEW_QUIZZES_ONLY: FrozenSet[str] = frozenset({"Categorization", "Ordering"})

# Choice label pairs that make a two-choice item a True/False question.
TRUE_FALSE_PAIRS: List[Tuple[str, str]] = [
    ("true", "false"),
    ("t", "f"),
    ("yes", "no"),
    ("1", "0"),
]

# QTI 2.1 interaction element -> canonical type, checked in order.
INTERACTION_TYPES: List[Tuple[str, str]] = [
    ("choiceInteraction", "Multiple Choice"),
    ("textEntryInteraction", "Fill in Blank"),
    ("extendedTextInteraction", "Essay"),
    ("matchInteraction", "Matching"),
    ("associateInteraction", "Matching"),
    ("hotspotInteraction", "Hotspot"),
    ("selectPointInteraction", "Hotspot"),
    ("orderInteraction", "Ordering"),
    ("inlineChoiceInteraction", "Inline Choice"),
    ("uploadInteraction", "File Upload"),
]

# QTI 1.2 presentation response element -> canonical type, checked in order.
RESPONSE_TYPES_12: List[Tuple[str, str]] = [
    ("response_str", "Fill in Blank"),
    ("response_num", "Numerical"),
    ("response_xy", "Hotspot"),
    ("response_grp", "Matching"),
]
