"""
Confidence bands and disposition routing.

Decision tree (inclusive lower bounds, evaluated top-down):
a) confidence >= EXCELLENT (95)  -> auto_assigned
b) confidence >= GOOD (80)       -> needs_review (review optional)
c) confidence >= FAIR (60)       -> needs_review (review required)
d) below FAIR                    -> rejected
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config.settings import settings
from matching.contact_resolution.exceptions import ConfigurationError
from matching.models import Disposition


class ConfidenceBand(Enum):
    """Finer-grained band kept for prioritizing the review queue."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class ConfidenceThresholds:
    excellent: float = 95.0
    good: float = 80.0
    fair: float = 60.0
    poor: float = 30.0

    @classmethod
    def from_settings(cls) -> "ConfidenceThresholds":
        return cls(
            excellent=settings.EXCELLENT_THRESHOLD,
            good=settings.GOOD_THRESHOLD,
            fair=settings.FAIR_THRESHOLD,
            poor=settings.POOR_THRESHOLD,
        )

    def validate(self) -> "ConfidenceThresholds":
        values = (self.excellent, self.good, self.fair, self.poor)
        if any(v < 0 or v > 100 for v in values):
            raise ConfigurationError(f"Thresholds must be within 0-100: {values}")
        if not self.excellent >= self.good >= self.fair >= self.poor:
            raise ConfigurationError(
                f"Thresholds must be ordered excellent >= good >= fair >= poor: {values}"
            )
        return self


class DecisionRouter:
    """
    Stateless mapping from confidence to disposition.

    Usage:
        router = DecisionRouter()
        router.route(96.0)  # Disposition.AUTO_ASSIGNED
    """

    def __init__(self, thresholds: Optional[ConfidenceThresholds] = None):
        self.thresholds = (thresholds or ConfidenceThresholds.from_settings()).validate()

    def band(self, confidence: float) -> ConfidenceBand:
        t = self.thresholds
        if confidence >= t.excellent:
            return ConfidenceBand.EXCELLENT
        if confidence >= t.good:
            return ConfidenceBand.GOOD
        if confidence >= t.fair:
            return ConfidenceBand.FAIR
        if confidence >= t.poor:
            return ConfidenceBand.POOR
        return ConfidenceBand.NO_MATCH

    def route(self, confidence: float) -> Disposition:
        band = self.band(confidence)
        if band is ConfidenceBand.EXCELLENT:
            return Disposition.AUTO_ASSIGNED
        if band in (ConfidenceBand.GOOD, ConfidenceBand.FAIR):
            return Disposition.NEEDS_REVIEW
        return Disposition.REJECTED
