from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

import yaml

from lms_analyzer.data.question_types import (
    FULLY_SUPPORTED,
    LIMITED_SUPPORT,
    NEW_QUIZZES_ONLY,
    QUESTION_TYPE_ALIASES,
    UNKNOWN_TYPE,
)

SUPPORT_FULL = "full"
SUPPORT_LIMITED = "limited"
SUPPORT_NEW_QUIZZES_ONLY = "new_quizzes_only"
SUPPORT_UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class CapabilityCatalog:
    version: str
    aliases: Dict[str, str]
    full: FrozenSet[str]
    limited: FrozenSet[str]
    new_quizzes_only: FrozenSet[str]

    @staticmethod
    def default() -> "CapabilityCatalog":
        return CapabilityCatalog(
            version="builtin",
            aliases=dict(QUESTION_TYPE_ALIASES),
            full=FULLY_SUPPORTED,
            limited=LIMITED_SUPPORT,
            new_quizzes_only=NEW_QUIZZES_ONLY,
        )

    @staticmethod
    def load(path: str | Path) -> "CapabilityCatalog":
        """Load a catalog from YAML; omitted sections fall back to the builtin tables."""
        path = Path(path)
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Capability catalog {path} must be a mapping")
        version = data.get("version")
        if not version:
            raise ValueError("Capability catalog missing version")
        base = CapabilityCatalog.default()
        support = data.get("support") or {}
        if not isinstance(support, dict):
            raise ValueError("Capability catalog 'support' must be a mapping")
        aliases = dict(base.aliases)
        aliases.update({str(k).strip().lower(): str(v) for k, v in (data.get("aliases") or {}).items()})
        return CapabilityCatalog(
            version=str(version),
            aliases=aliases,
            full=_type_set(support, "full", base.full),
            limited=_type_set(support, "limited", base.limited),
            new_quizzes_only=_type_set(support, "new_quizzes_only", base.new_quizzes_only),
        )

    def canonical_type(self, raw_type: Any) -> str:
        if raw_type is None:
            return UNKNOWN_TYPE
        value = str(raw_type).strip()
        if not value:
            return UNKNOWN_TYPE
        return self.aliases.get(value.lower(), value)

    def support_level(self, question_type: str) -> str:
        if question_type in self.full:
            return SUPPORT_FULL
        if question_type in self.limited:
            return SUPPORT_LIMITED
        if question_type in self.new_quizzes_only:
            return SUPPORT_NEW_QUIZZES_ONLY
        return SUPPORT_UNSUPPORTED


def _type_set(support: Dict[str, Any], key: str, fallback: FrozenSet[str]) -> FrozenSet[str]:
    values = support.get(key)
    if values is None:
        return fallback
    if not isinstance(values, list):
        raise ValueError(f"Capability catalog support.{key} must be a list")
    return frozenset(str(v) for v in values)


_DEFAULT: Optional[CapabilityCatalog] = None


def default_catalog() -> CapabilityCatalog:
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = CapabilityCatalog.default()
    return _DEFAULT
