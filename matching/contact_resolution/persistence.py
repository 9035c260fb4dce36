"""
Durable side effects of a routing decision.

- Linked debt (plus optional initial agreement) on auto-assignment
- Append-only decision history for every routed record
"""

import json
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.logging import logger
from config.settings import settings
from matching.contact_resolution.exceptions import PersistenceError
from matching.contact_resolution.scorer import MatchEvaluation
from matching.contact_resolution.validator import parse_amount, parse_due_date
from matching.models import Agreement, Debt, Disposition, MatchingDecision


def json_safe(record: Mapping[str, Any]) -> dict:
    """Copy of a record that a JSON column can store verbatim."""
    return json.loads(json.dumps(dict(record), default=str))


class DecisionHistory:
    """
    Append-only matching history. Rows are only ever added.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        record_ref: str,
        record: Mapping[str, Any],
        disposition: Disposition,
        confidence: float,
        criteria: list[str],
        person_id: Optional[str] = None,
        company_id: Optional[str] = None,
        debt: Optional[Debt] = None,
    ) -> MatchingDecision:
        decision = MatchingDecision(
            record_ref=record_ref,
            crm_contact_id=_contact_id(record),
            person_id=person_id,
            company_id=company_id,
            decision=disposition,
            confidence=confidence,
            criteria=list(criteria),
            debt_id=debt.id if debt else None,
            amount_assigned=debt.amount if debt else None,
            source=record.get("source"),
        )
        self.db.add(decision)
        return decision

    def has_decision(self, record_ref: str) -> bool:
        return self.db.query(MatchingDecision.id).filter(
            MatchingDecision.record_ref == record_ref
        ).first() is not None

    def decisions_between(
        self,
        start: datetime,
        end: Optional[datetime] = None,
        company_id: Optional[str] = None,
    ) -> list[MatchingDecision]:
        query = self.db.query(MatchingDecision).filter(
            MatchingDecision.created_at >= start
        )
        if end is not None:
            query = query.filter(MatchingDecision.created_at < end)
        if company_id is not None:
            query = query.filter(MatchingDecision.company_id == company_id)
        return query.order_by(MatchingDecision.created_at).all()


class LinkWriter:
    """Creates the debt that ties an auto-assigned record to a person."""

    def __init__(self, db: Session, default_due_days: int = settings.DEFAULT_DUE_DAYS):
        self.db = db
        self.default_due_days = default_due_days

    def create_debt(
        self,
        record: Mapping[str, Any],
        evaluation: MatchEvaluation,
        company_id: Optional[str] = None,
    ) -> Debt:
        amount = _record_amount(record)
        due_date = parse_due_date(record.get("due_date")) or (
            date.today() + timedelta(days=self.default_due_days)
        )

        debt = Debt(
            person_id=evaluation.candidate_id,
            company_id=company_id,
            amount=amount,
            description=record.get("description")
            or f"Debt imported from CRM - {record.get('full_name', '')}".strip(),
            due_date=due_date,
            status="pending",
            priority=record.get("priority") or "medium",
            created_from_crm=True,
            crm_contact_id=_contact_id(record),
            crm_source=record.get("source") or "crm_import",
            provenance={
                "matching_confidence": evaluation.confidence,
                "matching_criteria": list(evaluation.matched_criteria),
                "original_crm_data": json_safe(record),
            },
        )
        self.db.add(debt)
        self.db.flush()
        return debt

    def create_agreement(
        self,
        record: Mapping[str, Any],
        debt: Debt,
        company_id: Optional[str] = None,
    ) -> Optional[Agreement]:
        """Propose an initial agreement when the record carries terms."""
        if not record.get("agreement_terms"):
            return None

        try:
            with self.db.begin_nested():
                agreement = Agreement(
                    debt_id=debt.id,
                    person_id=debt.person_id,
                    company_id=company_id,
                    terms=str(record["agreement_terms"]),
                    status="proposed",
                    proposed_amount=debt.amount,
                    proposed_installments=int(record.get("installments") or 1),
                    proposed_interest_rate=parse_amount(record.get("interest_rate") or 0)
                    or Decimal("0"),
                    created_from_crm=True,
                )
                self.db.add(agreement)
                self.db.flush()
        except (SQLAlchemyError, ValueError, TypeError) as e:
            # The debt stands without an agreement
            logger.warning(f"Could not create agreement for debt {debt.id}: {e}")
            return None

        logger.info(f"Initial agreement created: ID {agreement.id}")
        return agreement


class MatchPersistence:
    """
    Applies one routed decision in a single transaction: the linked debt
    (if any) and its history row commit together or not at all.
    """

    def __init__(self, db: Session, links: Optional[LinkWriter] = None):
        self.db = db
        self.history = DecisionHistory(db)
        self.links = links or LinkWriter(db)

    def apply(
        self,
        record_ref: str,
        record: Mapping[str, Any],
        disposition: Disposition,
        evaluation: Optional[MatchEvaluation],
        company_id: Optional[str] = None,
    ) -> MatchingDecision:
        try:
            debt = None
            if disposition is Disposition.AUTO_ASSIGNED:
                debt = self.links.create_debt(record, evaluation, company_id)
                self.links.create_agreement(record, debt, company_id)

            decision = self.history.append(
                record_ref=record_ref,
                record=record,
                disposition=disposition,
                confidence=evaluation.confidence if evaluation else 0.0,
                criteria=evaluation.matched_criteria if evaluation else [],
                person_id=evaluation.candidate_id if evaluation else None,
                company_id=company_id,
                debt=debt,
            )
            self.db.commit()
        except (SQLAlchemyError, ValueError, TypeError) as e:
            self.db.rollback()
            raise PersistenceError(
                f"Could not persist {disposition.value} decision for record {record_ref}: {e}"
            ) from e

        return decision


def _record_amount(record: Mapping[str, Any]) -> Decimal:
    for key in ("amount", "debt_amount"):
        amount = parse_amount(record.get(key))
        if amount:
            return amount
    return Decimal("0")


def _contact_id(record: Mapping[str, Any]) -> Optional[str]:
    value = record.get("id")
    return str(value) if value is not None else None
