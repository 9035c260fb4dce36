"""
Aggregate statistics over the matching decision history.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from matching.contact_resolution.persistence import DecisionHistory
from matching.models import Disposition, MatchingDecision

PERIODS = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}


@dataclass
class MatchingStatsReport:
    period: str
    start_date: datetime
    total: int = 0
    auto_assigned: int = 0
    needs_review: int = 0
    rejected: int = 0
    average_confidence: float = 0.0
    success_rate: float = 0.0
    manual_review_rate: float = 0.0
    rejection_rate: float = 0.0
    total_amount_assigned: Decimal = Decimal("0")
    top_criteria: list[tuple[str, int]] = field(default_factory=list)


class MatchingStats:
    """
    Reads decisions for a time window and aggregates them.

    Usage:
        stats = MatchingStats(db).get_matching_stats(period="week")
        print(stats.success_rate)
    """

    def __init__(self, db: Session):
        self.history = DecisionHistory(db)

    def get_matching_stats(
        self,
        period: str = "month",
        company_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MatchingStatsReport:
        if period not in PERIODS:
            raise ValueError(f"Unknown period '{period}', expected one of {sorted(PERIODS)}")

        # decision timestamps are naive UTC
        now = now or datetime.now(timezone.utc).replace(tzinfo=None)
        start = now - PERIODS[period]
        decisions = self.history.decisions_between(start, company_id=company_id)
        return summarize(decisions, period, start)


def summarize(
    decisions: list[MatchingDecision], period: str, start: datetime
) -> MatchingStatsReport:
    report = MatchingStatsReport(period=period, start_date=start, total=len(decisions))
    if not decisions:
        return report

    counts = Counter(d.decision for d in decisions)
    report.auto_assigned = counts[Disposition.AUTO_ASSIGNED]
    report.needs_review = counts[Disposition.NEEDS_REVIEW]
    report.rejected = counts[Disposition.REJECTED]

    report.average_confidence = sum(d.confidence for d in decisions) / report.total
    report.success_rate = report.auto_assigned / report.total * 100
    report.manual_review_rate = report.needs_review / report.total * 100
    report.rejection_rate = report.rejected / report.total * 100

    report.total_amount_assigned = sum(
        (Decimal(d.amount_assigned) for d in decisions if d.amount_assigned),
        Decimal("0"),
    )
    report.top_criteria = top_matching_criteria(decisions)
    return report


def top_matching_criteria(decisions: list[MatchingDecision], limit: int = 5) -> list[tuple[str, int]]:
    """Most frequently matched criteria across decisions."""
    counter = Counter()
    for d in decisions:
        if isinstance(d.criteria, list):
            counter.update(d.criteria)
    return counter.most_common(limit)
