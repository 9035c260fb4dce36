"""
Errors raised by the contact resolution engine.
"""

from typing import Optional


class MatchingError(Exception):
    """Base class for contact resolution errors."""


class RecordValidationError(MatchingError):
    """An incoming record failed required-field or shape checks."""

    def __init__(self, errors: list[str], warnings: Optional[list[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__("; ".join(self.errors) or "invalid record")


class CandidateLookupError(MatchingError):
    """Candidate retrieval from the person registry failed."""


class PersistenceError(MatchingError):
    """A routing decision was computed but could not be durably applied."""


class ConfigurationError(MatchingError):
    """The criterion table or thresholds cannot produce a meaningful confidence."""
