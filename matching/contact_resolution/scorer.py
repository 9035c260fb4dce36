"""
Weighted multi-criterion scoring of a record against one candidate.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from matching.contact_resolution.matchers import (
    CriterionEvaluator,
    CriterionResult,
    MatchCriterion,
    validate_criteria,
)
from matching.contact_resolution.router import (
    ConfidenceBand,
    ConfidenceThresholds,
    DecisionRouter,
)


@dataclass(frozen=True)
class Recommendation:
    """Advisory annotation on an evaluation. Never alters the decision."""
    type: str
    priority: str
    message: str


@dataclass
class MatchEvaluation:
    """Score of one record/candidate pair."""
    candidate: Mapping[str, Any]
    total_score: float = 0.0
    max_possible_score: int = 0
    confidence: float = 0.0
    band: ConfidenceBand = ConfidenceBand.NO_MATCH
    criteria: dict[str, CriterionResult] = field(default_factory=dict)
    matched_criteria: list[str] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)

    @property
    def candidate_id(self) -> Optional[str]:
        return self.candidate.get("id")

    def __repr__(self) -> str:
        return (
            f"<MatchEvaluation(candidate={self.candidate_id}, "
            f"conf={self.confidence:.1f}, matched={self.matched_criteria})>"
        )


@dataclass
class MatchResult:
    """All evaluations for one record, best first."""
    record: Mapping[str, Any]
    evaluations: list[MatchEvaluation] = field(default_factory=list)
    total_potential: int = 0

    @property
    def best(self) -> Optional[MatchEvaluation]:
        return self.evaluations[0] if self.evaluations else None


# Band recommendations
BAND_RECOMMENDATIONS = {
    ConfidenceBand.EXCELLENT: Recommendation(
        "auto_match", "high", "Excellent match - eligible for automatic assignment"
    ),
    ConfidenceBand.GOOD: Recommendation(
        "review_optional", "medium", "Good match - optional review recommended"
    ),
    ConfidenceBand.FAIR: Recommendation(
        "manual_review", "medium", "Fair match - manual review required"
    ),
}
NO_MATCH_RECOMMENDATION = Recommendation(
    "no_match", "low", "Poor match - probably not the same person"
)

# Enrichment hints for identifying criteria that did not match
ENRICHMENT_RECOMMENDATIONS = {
    "rut": Recommendation(
        "data_enrichment", "high", "Missing national id (RUT) - request data update"
    ),
    "email": Recommendation(
        "data_enrichment", "medium", "Missing email - would improve matching precision"
    ),
}


class MatchScorer:
    """
    Runs every configured criterion for a record/candidate pair.

    Max possible score always covers the full criterion set, so missing
    fields lower the confidence instead of being ignored.
    """

    def __init__(
        self,
        criteria: Sequence[MatchCriterion],
        thresholds: Optional[ConfidenceThresholds] = None,
        evaluator: Optional[CriterionEvaluator] = None,
    ):
        self.criteria = validate_criteria(criteria)
        self.router = DecisionRouter(thresholds)
        self.evaluator = evaluator or CriterionEvaluator()

    def score(self, record: Mapping[str, Any], candidate: Mapping[str, Any]) -> MatchEvaluation:
        evaluation = MatchEvaluation(candidate=candidate)

        for criterion in self.criteria:
            result = self.evaluator.evaluate(
                record.get(criterion.field),
                candidate.get(criterion.field),
                criterion,
            )
            evaluation.criteria[criterion.name] = result
            evaluation.total_score += result.score
            evaluation.max_possible_score += criterion.weight
            if result.matched:
                evaluation.matched_criteria.append(criterion.name)

        if evaluation.max_possible_score > 0:
            # round away float noise so exact threshold hits stay exact
            confidence = round(evaluation.total_score / evaluation.max_possible_score * 100, 9)
            evaluation.confidence = min(100.0, max(0.0, confidence))

        evaluation.band = self.router.band(evaluation.confidence)
        evaluation.recommendations = self.recommend(evaluation)
        return evaluation

    def recommend(self, evaluation: MatchEvaluation) -> list[Recommendation]:
        recommendations = [
            BAND_RECOMMENDATIONS.get(evaluation.band, NO_MATCH_RECOMMENDATION)
        ]
        for name, hint in ENRICHMENT_RECOMMENDATIONS.items():
            if name in evaluation.criteria and name not in evaluation.matched_criteria:
                recommendations.append(hint)
        return recommendations
