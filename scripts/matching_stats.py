#!/usr/bin/env python3
"""
Show aggregate CRM matching statistics.

Usage:
    python scripts/matching_stats.py
    python scripts/matching_stats.py --period week --company-id acme
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from matching.contact_resolution.stats import PERIODS, MatchingStats
from matching.database import SessionLocal


def main():
    parser = argparse.ArgumentParser(description="CRM matching statistics")
    parser.add_argument("--period", choices=sorted(PERIODS), default="month")
    parser.add_argument("--company-id", help="Only decisions for this company")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        stats = MatchingStats(db).get_matching_stats(
            period=args.period, company_id=args.company_id
        )
    finally:
        db.close()

    print("=" * 60)
    print(f"MATCHING STATS ({stats.period}, since {stats.start_date:%Y-%m-%d})")
    print("=" * 60)
    print(f"Decisions:          {stats.total}")
    print(f"Auto-assigned:      {stats.auto_assigned} ({stats.success_rate:.1f}%)")
    print(f"Needs review:       {stats.needs_review} ({stats.manual_review_rate:.1f}%)")
    print(f"Rejected:           {stats.rejected} ({stats.rejection_rate:.1f}%)")
    print(f"Average confidence: {stats.average_confidence:.1f}")
    print(f"Amount assigned:    {stats.total_amount_assigned}")
    if stats.top_criteria:
        print("\nTop matched criteria:")
        for criterion, count in stats.top_criteria:
            print(f"  {criterion:<12} {count}")
    print("=" * 60)


if __name__ == "__main__":
    main()
