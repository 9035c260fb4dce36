"""
Field matching primitives for contact resolution.

- Text normalization policies (default, email, phone, national id)
- Edit-distance similarity (rapidfuzz Levenshtein)
- Weighted criterion evaluation over one field pair
"""

import re
import unicodedata
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from rapidfuzz.distance import Levenshtein

from config.settings import settings
from matching.contact_resolution.exceptions import ConfigurationError


class NormalizationMode(Enum):
    """How a raw field value is canonicalized before comparison."""
    DEFAULT = "default"
    EMAIL = "email"
    PHONE = "phone"
    NATIONAL_ID = "national_id"


class ComparisonMode(Enum):
    """Closed set of comparison policies a criterion can use."""
    EXACT = "exact"
    FUZZY = "fuzzy"
    CONTAINS = "contains"
    NORMALIZED = "normalized"


@dataclass(frozen=True)
class MatchCriterion:
    """One weighted field-comparison rule."""
    field: str
    weight: int
    mode: ComparisonMode
    threshold: Optional[float] = None
    normalization: NormalizationMode = NormalizationMode.DEFAULT
    description: str = ""

    @property
    def name(self) -> str:
        return self.field


@dataclass(frozen=True)
class CriterionResult:
    """Partial score of one criterion for one record/candidate pair."""
    name: str
    score: float = 0.0
    matched: bool = False


class Normalizer:
    """
    Canonicalizes raw field values.

    - default: fold diacritics, lowercase, non-alphanumerics to space,
      collapse whitespace
    - email: remove whitespace, lowercase (punctuation is meaningful)
    - phone: digits only, keep the trailing subscriber digits
    - national_id: digits and check character only, lowercase
    """

    def __init__(self, phone_digits: int = settings.PHONE_SUBSCRIBER_DIGITS):
        self.phone_digits = phone_digits

    def normalize(
        self,
        value: Any,
        mode: NormalizationMode = NormalizationMode.DEFAULT,
    ) -> str:
        if value is None:
            return ""
        text = str(value)
        if not text.strip():
            return ""

        if mode is NormalizationMode.EMAIL:
            return re.sub(r"\s", "", text).lower()

        if mode is NormalizationMode.PHONE:
            digits = re.sub(r"\D", "", text)
            if len(digits) > self.phone_digits:
                digits = digits[-self.phone_digits:]
            return digits

        if mode is NormalizationMode.NATIONAL_ID:
            return re.sub(r"[^0-9k]", "", text.lower())

        normalized = self.fold_diacritics(text).lower()
        normalized = re.sub(r"[^a-z0-9\s]", " ", normalized)
        return re.sub(r"\s+", " ", normalized).strip()

    @staticmethod
    def fold_diacritics(text: str) -> str:
        """'Pérez' -> 'Perez'."""
        decomposed = unicodedata.normalize("NFKD", text)
        return "".join(c for c in decomposed if not unicodedata.combining(c))


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit cost for insert, delete and substitute."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str, threshold: float = 0.8) -> float:
    """
    Similarity in [0, 1] from edit distance.

    Values below the threshold count as a non-match and return 0 rather
    than a small positive score.
    """
    if not a or not b:
        return 0.0

    raw = 1 - edit_distance(a, b) / max(len(a), len(b))
    return raw if raw >= threshold else 0.0


class CriterionEvaluator:
    """Applies one criterion to one field pair."""

    def __init__(self, normalizer: Optional[Normalizer] = None):
        self.normalizer = normalizer or Normalizer()

    def evaluate(self, raw_a: Any, raw_b: Any, criterion: MatchCriterion) -> CriterionResult:
        # Missing data is never a match
        if _is_blank(raw_a) or _is_blank(raw_b):
            return CriterionResult(criterion.name)

        a = self.normalizer.normalize(raw_a, criterion.normalization)
        b = self.normalizer.normalize(raw_b, criterion.normalization)
        if not a or not b:
            return CriterionResult(criterion.name)

        if criterion.mode is ComparisonMode.EXACT:
            matched = a == b
            return CriterionResult(criterion.name, criterion.weight if matched else 0.0, matched)

        if criterion.mode is ComparisonMode.FUZZY:
            score = similarity(a, b, criterion.threshold)
            return CriterionResult(criterion.name, criterion.weight * score, score > 0)

        if criterion.mode is ComparisonMode.CONTAINS:
            matched = a in b or b in a
            return CriterionResult(criterion.name, criterion.weight if matched else 0.0, matched)

        if criterion.mode is ComparisonMode.NORMALIZED:
            matched = a == b
            return CriterionResult(criterion.name, criterion.weight if matched else 0.0, matched)

        raise ConfigurationError(f"Unsupported comparison mode: {criterion.mode}")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# =============================================================================
# CRITERION TABLE
# =============================================================================

def parse_criteria(table: Any) -> tuple[MatchCriterion, ...]:
    """
    Build and validate a criterion set from a mapping
    ``field -> {weight, mode, threshold?, normalization?, description?}``.
    """
    if not isinstance(table, dict) or not table:
        raise ConfigurationError("Criterion table is empty or not a mapping")

    criteria = []
    for field_name, entry in table.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Criterion '{field_name}' must be a mapping")

        try:
            mode = ComparisonMode(entry.get("mode"))
        except ValueError:
            raise ConfigurationError(
                f"Criterion '{field_name}' has unknown mode {entry.get('mode')!r}"
            ) from None

        try:
            normalization = NormalizationMode(entry.get("normalization", "default"))
        except ValueError:
            raise ConfigurationError(
                f"Criterion '{field_name}' has unknown normalization "
                f"{entry.get('normalization')!r}"
            ) from None

        criteria.append(MatchCriterion(
            field=str(field_name),
            weight=entry.get("weight"),
            mode=mode,
            threshold=entry.get("threshold"),
            normalization=normalization,
            description=entry.get("description", ""),
        ))

    return validate_criteria(criteria)


def validate_criteria(criteria) -> tuple[MatchCriterion, ...]:
    """Reject criterion sets that can never yield a meaningful confidence."""
    criteria = tuple(criteria or ())
    if not criteria:
        raise ConfigurationError("At least one matching criterion is required")

    for c in criteria:
        if isinstance(c.weight, bool) or not isinstance(c.weight, int) or c.weight <= 0:
            raise ConfigurationError(
                f"Criterion '{c.name}' weight must be a positive integer, got {c.weight!r}"
            )
        if c.mode is ComparisonMode.FUZZY:
            if (
                isinstance(c.threshold, bool)
                or not isinstance(c.threshold, (int, float))
                or not 0 < c.threshold <= 1
            ):
                raise ConfigurationError(
                    f"Fuzzy criterion '{c.name}' needs a threshold in (0, 1], got {c.threshold!r}"
                )

    if sum(c.weight for c in criteria) <= 0:
        raise ConfigurationError("Total criterion weight must be positive")
    names = [c.name for c in criteria]
    if len(names) != len(set(names)):
        raise ConfigurationError(f"Duplicate criterion fields: {names}")
    return criteria


def load_criteria(path: Optional[Path] = None) -> tuple[MatchCriterion, ...]:
    """Load the criterion table from YAML config."""
    path = Path(path) if path else settings.criteria_path
    try:
        with open(path, "r", encoding="utf-8") as f:
            table = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read criteria from {path}: {e}") from e
    return parse_criteria(table)
