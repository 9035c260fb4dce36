"""
Contact Resolution Module

Weighted multi-criterion matching of CRM contacts against the person registry:
- Normalization and edit-distance similarity (rapidfuzz)
- Configurable criterion table (exact / fuzzy / contains / normalized)
- Confidence routing to auto-assign, review or reject
- Batch orchestration with per-record failure isolation
"""

from matching.contact_resolution.exceptions import (
    CandidateLookupError,
    ConfigurationError,
    MatchingError,
    PersistenceError,
    RecordValidationError,
)
from matching.contact_resolution.matchers import (
    ComparisonMode,
    MatchCriterion,
    NormalizationMode,
    load_criteria,
)
from matching.contact_resolution.resolver import BatchRunSummary, MatchingEngine
from matching.contact_resolution.router import ConfidenceThresholds, DecisionRouter
from matching.contact_resolution.stats import MatchingStats

__all__ = [
    "BatchRunSummary",
    "CandidateLookupError",
    "ComparisonMode",
    "ConfidenceThresholds",
    "ConfigurationError",
    "DecisionRouter",
    "MatchCriterion",
    "MatchingEngine",
    "MatchingError",
    "MatchingStats",
    "NormalizationMode",
    "PersistenceError",
    "RecordValidationError",
    "load_criteria",
]
