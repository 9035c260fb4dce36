#!/usr/bin/env python3
"""
Match imported CRM contacts against the person registry.

Input is a JSON array of already-parsed contact records.

Usage:
    python scripts/run_crm_matching.py contacts.json --company-id acme
    python scripts/run_crm_matching.py contacts.json --company-id acme --show-errors
    python scripts/run_crm_matching.py contacts.json --company-id acme --errors-out failed.json
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from matching.contact_resolution import ConfigurationError, MatchingEngine
from matching.contact_resolution.persistence import json_safe
from matching.database import SessionLocal, init_db


def load_records(path: Path) -> list[dict]:
    with open(path, "r", encoding="utf-8") as f:
        records = json.load(f)
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ValueError(f"{path} must contain a JSON array of objects")
    return records


def print_errors(summary):
    if summary.invalid_records:
        print("\nINVALID RECORDS (not scored)")
        print("-" * 60)
        for invalid in summary.invalid_records:
            name = invalid.record.get("full_name") or "<no name>"
            print(f"  [{invalid.index}] {name} (field: {invalid.field})")
            for error in invalid.errors:
                print(f"      - {error}")

    if summary.errors:
        print("\nPROCESSING ERRORS")
        print("-" * 60)
        for error in summary.errors:
            name = error.record.get("full_name") or "<no name>"
            print(f"  [{error.index}] {name} ({error.stage}, {error.error_type})")
            print(f"      - {error.message}")


def main():
    parser = argparse.ArgumentParser(
        description="Match CRM contacts to registered persons and assign debts"
    )
    parser.add_argument("input", type=Path, help="JSON file with a list of contact records")
    parser.add_argument("--company-id", required=True, help="Company the debts belong to")
    parser.add_argument("--source", default="crm_import", help="Source label stored with each decision")
    parser.add_argument("--init-db", action="store_true", help="Create tables before running")
    parser.add_argument("--show-errors", action="store_true", help="Print invalid and failed records")
    parser.add_argument(
        "--errors-out",
        type=Path,
        help="Write invalid and failed records to this JSON file for re-submission",
    )

    args = parser.parse_args()

    try:
        records = load_records(args.input)
    except (OSError, ValueError) as e:
        print(f"Cannot read input: {e}")
        sys.exit(1)

    if args.init_db:
        init_db()

    db = SessionLocal()

    try:
        try:
            engine = MatchingEngine(db)
            result = engine.import_records(records, company_id=args.company_id, source=args.source)
        except ConfigurationError as e:
            print(f"Configuration error: {e}")
            sys.exit(1)

        summary = result.summary

        print("=" * 60)
        print("CRM MATCHING")
        print("=" * 60)
        print(f"Records received: {result.total}")
        print(f"Invalid:          {result.invalid}")
        print(f"Processed:        {summary.processed}")
        print(f"  Auto-assigned:  {summary.auto_assigned}")
        print(f"  Needs review:   {summary.needs_review}")
        print(f"  Rejected:       {summary.rejected}")
        print(f"  Errored:        {summary.errored}")
        print(f"Skipped:          {summary.skipped} (already decided)")
        print(f"Elapsed:          {summary.elapsed_seconds:.2f}s")
        print("=" * 60)

        if args.show_errors:
            print_errors(summary)

        failed = summary.failed_records()
        if args.errors_out and failed:
            args.errors_out.parent.mkdir(parents=True, exist_ok=True)
            with open(args.errors_out, "w", encoding="utf-8") as f:
                json.dump([json_safe(r) for r in failed], f, indent=2, ensure_ascii=False)
            print(f"\nWrote {len(failed)} records for re-submission to: {args.errors_out}")

    finally:
        db.close()


if __name__ == "__main__":
    main()
