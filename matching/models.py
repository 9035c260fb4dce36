"""
CRM Matching Engine - Database Models

SQLAlchemy ORM models for the person registry, linked debts and the
append-only matching decision history.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# Enums
class Disposition(PyEnum):
    """Terminal classification of a scored match."""
    AUTO_ASSIGNED = "auto_assigned"
    NEEDS_REVIEW = "needs_review"
    REJECTED = "rejected"


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Person(Base):
    """
    Registry of known persons that incoming CRM contacts are matched against.
    """

    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    full_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # Identifiers
    rut: Mapped[Optional[str]] = mapped_column(String(16), index=True)
    email: Mapped[Optional[str]] = mapped_column(Text, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), index=True)

    address: Mapped[Optional[str]] = mapped_column(Text)
    role: Mapped[str] = mapped_column(String(32), default="debtor", index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    debts: Mapped[list["Debt"]] = relationship(back_populates="person")

    def as_candidate(self) -> dict:
        """Field mapping used by the scorer."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "rut": self.rut,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, name={self.full_name}, rut={self.rut})>"


class Debt(Base):
    """
    Obligation created when an incoming contact is auto-assigned to a person.
    Provenance of the match is kept verbatim for audits.
    """

    __tablename__ = "debts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    person_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("persons.id"), nullable=False, index=True
    )
    company_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    priority: Mapped[str] = mapped_column(String(20), default="medium")

    # CRM provenance
    created_from_crm: Mapped[bool] = mapped_column(Boolean, default=True)
    crm_contact_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    crm_source: Mapped[Optional[str]] = mapped_column(String(64))
    provenance: Mapped[Optional[dict]] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    person: Mapped["Person"] = relationship(back_populates="debts")
    agreements: Mapped[list["Agreement"]] = relationship(back_populates="debt")

    def __repr__(self) -> str:
        return f"<Debt(id={self.id}, person={self.person_id}, amount={self.amount})>"


class Agreement(Base):
    """
    Initial payment agreement proposed with a CRM-imported debt.
    """

    __tablename__ = "agreements"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    debt_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("debts.id"), nullable=False, index=True
    )
    person_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("persons.id"), nullable=False, index=True
    )
    company_id: Mapped[Optional[str]] = mapped_column(String(64))

    terms: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="proposed")
    proposed_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    proposed_installments: Mapped[int] = mapped_column(Integer, default=1)
    proposed_interest_rate: Mapped[Decimal] = mapped_column(Numeric(6, 3), default=0)
    created_from_crm: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    debt: Mapped["Debt"] = relationship(back_populates="agreements")

    def __repr__(self) -> str:
        return f"<Agreement(id={self.id}, debt={self.debt_id}, status={self.status})>"


class MatchingDecision(Base):
    """
    Append-only history of matching decisions, one row per processed record.
    Corrections are recorded as new rows, never as updates.
    """

    __tablename__ = "crm_matching_history"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    record_ref: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    crm_contact_id: Mapped[Optional[str]] = mapped_column(String(64))
    person_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("persons.id"), nullable=True, index=True
    )
    company_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)

    decision: Mapped[Disposition] = mapped_column(
        Enum(Disposition, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    criteria: Mapped[Optional[list]] = mapped_column(JSON, default=list)

    debt_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("debts.id"), nullable=True
    )
    amount_assigned: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2))
    source: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_matching_history_decision_date", "decision", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MatchingDecision(record={self.record_ref}, "
            f"decision={self.decision.value}, confidence={self.confidence:.1f})>"
        )
