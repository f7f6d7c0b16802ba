from __future__ import annotations


class AnalyzerError(Exception):
    """Base class for conditions that prevent a report from being produced."""


class ExtractionError(AnalyzerError):
    """The container could not be opened (corrupt or unreadable archive)."""


class NoAssessmentContentError(AnalyzerError):
    """A container held no recognizable assessment documents, or none parsed."""


class UnsupportedFormatError(AnalyzerError):
    """The input is a legacy container type this analyzer does not read."""
