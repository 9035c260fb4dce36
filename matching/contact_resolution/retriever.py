"""
Candidate retrieval from the person registry.
"""

from typing import Any, Mapping, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.logging import logger
from config.settings import settings
from matching.contact_resolution.exceptions import CandidateLookupError
from matching.contact_resolution.matchers import NormalizationMode, Normalizer
from matching.models import Person


class CandidateRetriever:
    """
    Finds a bounded list of plausible registry persons for a record.

    Strong identifiers (RUT, email, phone) narrow the query at the SQL
    level. Records without any of them fall back to a broad scan of the
    most recent persons.
    """

    def __init__(
        self,
        db: Session,
        normalizer: Optional[Normalizer] = None,
        role: str = settings.CANDIDATE_ROLE,
    ):
        self.db = db
        self.normalizer = normalizer or Normalizer()
        self.role = role

    def find_candidates(self, record: Mapping[str, Any], limit: int = 10) -> list[dict]:
        filters = self._identifier_filters(record)

        try:
            query = self.db.query(Person).filter(
                Person.role == self.role,
                Person.is_active.is_(True),
            )
            if filters:
                query = query.filter(or_(*filters))
            else:
                logger.debug("No strong identifier, falling back to broad candidate scan")

            persons = (
                query.order_by(Person.created_at.desc(), Person.id)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CandidateLookupError(f"Candidate lookup failed: {e}") from e

        return [p.as_candidate() for p in persons]

    def _identifier_filters(self, record: Mapping[str, Any]) -> list:
        filters = []

        rut = self.normalizer.normalize(record.get("rut"), NormalizationMode.NATIONAL_ID)
        if rut:
            filters.append(func.lower(_strip_chars(Person.rut, ".- ")) == rut)

        email = self.normalizer.normalize(record.get("email"), NormalizationMode.EMAIL)
        if email:
            filters.append(func.lower(Person.email) == email)

        phone = self.normalizer.normalize(record.get("phone"), NormalizationMode.PHONE)
        if phone:
            filters.append(_strip_chars(Person.phone, " -()").like(f"%{phone}"))

        return filters


def _strip_chars(column, chars: str):
    """SQL expression removing each of ``chars`` from a text column."""
    expr = column
    for ch in chars:
        expr = func.replace(expr, ch, "")
    return expr
