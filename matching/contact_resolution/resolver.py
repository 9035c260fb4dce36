"""
CRM Contact Resolver

Reconciles incoming CRM contacts against the person registry.

Per record:
1. Skip if a decision already exists for the record (re-run safety)
2. Retrieve a bounded candidate list from the registry
3. Score every candidate, keep the best by confidence
4. Route the best confidence to auto_assigned / needs_review / rejected
5. Persist the linked debt (auto-assign only) and the decision row

A failure on one record is recorded in the run summary and the batch moves
on. Only a configuration error, raised before any record is touched, can
abort a run.
"""

import hashlib
import json
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from config.logging import logger
from config.settings import settings
from matching.contact_resolution.exceptions import (
    CandidateLookupError,
    ConfigurationError,
    PersistenceError,
    RecordValidationError,
)
from matching.contact_resolution.matchers import (
    MatchCriterion,
    load_criteria,
    validate_criteria,
)
from matching.contact_resolution.persistence import MatchPersistence
from matching.contact_resolution.retriever import CandidateRetriever
from matching.contact_resolution.router import ConfidenceThresholds, DecisionRouter
from matching.contact_resolution.scorer import MatchEvaluation, MatchResult, MatchScorer
from matching.contact_resolution.validator import ContactValidator, ValidationResult
from matching.models import Disposition

# Keys added by import_records; excluded from record fingerprints
IMPORT_TAGS = ("import_batch", "original_index")

# Width of MatchingDecision.record_ref
RECORD_REF_LENGTH = 64


@dataclass
class RecordError:
    """A record that failed after validation."""
    index: int
    record: Mapping[str, Any]
    stage: str
    error_type: str
    message: str


@dataclass
class InvalidRecord:
    """A record excluded from matching by validation."""
    index: int
    record: Mapping[str, Any]
    errors: list[str]
    warnings: list[str]
    field: Optional[str] = None


@dataclass
class RecordOutcome:
    index: int
    record_ref: str
    disposition: Disposition
    confidence: float
    person_id: Optional[str] = None
    debt_id: Optional[str] = None


@dataclass
class BatchRunSummary:
    """Statistics from a batch run."""
    total: int = 0
    processed: int = 0
    matched: int = 0
    auto_assigned: int = 0
    needs_review: int = 0
    rejected: int = 0
    skipped: int = 0
    errors: list[RecordError] = field(default_factory=list)
    invalid_records: list[InvalidRecord] = field(default_factory=list)
    outcomes: list[RecordOutcome] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def decided(self) -> int:
        return self.auto_assigned + self.needs_review + self.rejected

    @property
    def errored(self) -> int:
        return len(self.errors)

    def failed_records(self) -> list[Mapping[str, Any]]:
        """Original records worth re-submitting after remediation."""
        return [i.record for i in self.invalid_records] + [e.record for e in self.errors]


@dataclass
class ImportResult:
    total: int
    valid: int
    invalid: int
    summary: BatchRunSummary


def record_reference(record: Mapping[str, Any]) -> str:
    """
    Stable reference for a record across runs.

    Uses the CRM contact id when present, otherwise a fingerprint of the
    record contents.
    """
    source = record.get("source") or "crm_import"
    contact_id = record.get("id")
    if contact_id is not None and str(contact_id).strip():
        reference = f"{source}:{str(contact_id).strip()}"
        if len(reference) <= RECORD_REF_LENGTH:
            return reference
        # References wider than the column are hashed
        return _fingerprint(reference)

    payload = {k: v for k, v in record.items() if k not in IMPORT_TAGS}
    return _fingerprint(json.dumps(payload, sort_keys=True, default=str))


def _fingerprint(text: str) -> str:
    return "sha256:" + hashlib.sha256(text.encode("utf-8")).hexdigest()[:RECORD_REF_LENGTH - 8]


class MatchingEngine:
    """
    Contact matching engine bound to one session and one configuration.

    Usage:
        engine = MatchingEngine(db)
        summary = engine.process_batch(records, company_id="acme")
        print(summary.auto_assigned, summary.errored)
    """

    def __init__(
        self,
        db: Session,
        criteria: Optional[Sequence[MatchCriterion]] = None,
        thresholds: Optional[ConfidenceThresholds] = None,
        retriever: Optional[CandidateRetriever] = None,
        persistence: Optional[MatchPersistence] = None,
        candidate_limit: int = settings.CANDIDATE_LIMIT,
        min_score: float = settings.MIN_CANDIDATE_SCORE,
        history_cache_size: int = settings.HISTORY_CACHE_SIZE,
    ):
        self.db = db
        self.criteria = validate_criteria(criteria if criteria is not None else load_criteria())
        self.router = DecisionRouter(thresholds)
        self.scorer = MatchScorer(self.criteria, self.router.thresholds)
        self.validator = ContactValidator()
        self.retriever = retriever or CandidateRetriever(db)
        self.persistence = persistence or MatchPersistence(db)
        self.candidate_limit = candidate_limit
        self.min_score = min_score
        self.history_cache_size = history_cache_size
        self._history: OrderedDict[str, MatchResult] = OrderedDict()

    # ------------------------------------------------------------------
    # Single-record operations
    # ------------------------------------------------------------------

    def validate(self, record: Mapping[str, Any]) -> ValidationResult:
        return self.validator.validate(record)

    def evaluate_match(
        self, record: Mapping[str, Any], candidate: Mapping[str, Any]
    ) -> MatchEvaluation:
        return self.scorer.score(record, candidate)

    def find_potential_matches(
        self,
        record: Mapping[str, Any],
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        exclude: Iterable[str] = (),
    ) -> MatchResult:
        """
        Score registry candidates for a record.

        Returns evaluations with a total score of at least ``min_score``,
        best confidence first, at most ``limit`` of them.

        Raises:
            RecordValidationError: the record cannot be scored meaningfully
        """
        validation = self.validator.validate(record)
        if not validation.valid:
            raise RecordValidationError(validation.errors, validation.warnings)

        limit = limit or self.candidate_limit
        candidates = self._retrieve(record, limit, exclude)
        return self._rank(record, candidates, limit, min_score)

    def _retrieve(
        self, record: Mapping[str, Any], limit: int, exclude: Iterable[str] = ()
    ) -> list[dict]:
        # Over-fetch so the score filter still leaves up to `limit` matches
        candidates = self.retriever.find_candidates(record, limit=limit * 2)
        excluded = set(exclude)
        return [c for c in candidates if c.get("id") not in excluded]

    def _rank(
        self,
        record: Mapping[str, Any],
        candidates: list[dict],
        limit: int,
        min_score: Optional[float] = None,
    ) -> MatchResult:
        min_score = self.min_score if min_score is None else min_score

        evaluations = [self.scorer.score(record, c) for c in candidates]
        evaluations = [e for e in evaluations if e.total_score >= min_score]
        evaluations.sort(key=lambda e: e.confidence, reverse=True)

        result = MatchResult(
            record=record,
            evaluations=evaluations[:limit],
            total_potential=len(candidates),
        )
        self._remember(record_reference(record), result)
        return result

    def recent_result(self, record_ref: str) -> Optional[MatchResult]:
        """Last match result computed by this engine for a record, if cached."""
        return self._history.get(record_ref)

    def _remember(self, record_ref: str, result: MatchResult):
        if self.history_cache_size <= 0:
            return
        self._history[record_ref] = result
        self._history.move_to_end(record_ref)
        while len(self._history) > self.history_cache_size:
            self._history.popitem(last=False)

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    def process_batch(
        self,
        records: Sequence[Mapping[str, Any]],
        company_id: Optional[str] = None,
        validate: bool = True,
    ) -> BatchRunSummary:
        """
        Match, route and persist a batch of records.

        Args:
            records: Already-parsed CRM records
            company_id: Company the imported debts belong to
            validate: Run field validation first (invalid records are
                listed separately and never scored)

        Returns:
            BatchRunSummary for the run
        """
        # Pre-flight: the only error allowed to abort the run
        validate_criteria(self.criteria)

        started = time.monotonic()
        summary = BatchRunSummary(total=len(records))
        claimed: set[str] = set()

        logger.info(f"Processing {len(records)} CRM contacts")

        for index, record in enumerate(records):
            if validate:
                validation = self.validator.validate(record)
                if not validation.valid:
                    summary.invalid_records.append(InvalidRecord(
                        index=index,
                        record=record,
                        errors=validation.errors,
                        warnings=validation.warnings,
                        field=validation.failing_field,
                    ))
                    logger.info(f"[INVALID] record {index}: {'; '.join(validation.errors)}")
                    continue

            self._process_record(index, record, company_id, claimed, summary)

            if summary.processed and summary.processed % 10 == 0:
                logger.info(f"Progress: {summary.processed}/{len(records)} processed")

        summary.elapsed_seconds = time.monotonic() - started

        logger.info("=" * 60)
        logger.info("CRM MATCHING COMPLETE")
        logger.info("=" * 60)
        logger.info(f"Processed: {summary.processed}")
        logger.info(f"Matched: {summary.matched}")
        logger.info(f"  - Auto-assigned: {summary.auto_assigned}")
        logger.info(f"  - Needs review: {summary.needs_review}")
        logger.info(f"  - Rejected: {summary.rejected}")
        logger.info(f"Skipped (already decided): {summary.skipped}")
        logger.info(f"Invalid: {len(summary.invalid_records)}")
        logger.info(f"Errors: {summary.errored}")
        logger.info("=" * 60)

        return summary

    def _process_record(
        self,
        index: int,
        record: Mapping[str, Any],
        company_id: Optional[str],
        claimed: set[str],
        summary: BatchRunSummary,
    ):
        stage = "lookup"
        try:
            record_ref = record_reference(record)
            if self.persistence.history.has_decision(record_ref):
                summary.skipped += 1
                logger.debug(f"[SKIP] {record_ref} already has a decision")
                return

            summary.processed += 1

            candidates = self._retrieve(record, self.candidate_limit, exclude=claimed)

            stage = "scoring"
            best = self._rank(record, candidates, self.candidate_limit).best
            disposition = self.router.route(best.confidence) if best else Disposition.REJECTED

            stage = "persistence"
            decision = self.persistence.apply(
                record_ref, record, disposition, best, company_id
            )
        except ConfigurationError:
            raise
        except Exception as e:
            if isinstance(e, CandidateLookupError):
                stage = "lookup"
            elif isinstance(e, PersistenceError):
                stage = "persistence"
            else:
                self.db.rollback()
            summary.errors.append(RecordError(
                index=index,
                record=record,
                stage=stage,
                error_type=type(e).__name__,
                message=str(e),
            ))
            logger.error(f"Error processing contact {index} ({stage}): {e}")
            return

        if best is not None:
            summary.matched += 1
        if disposition is Disposition.AUTO_ASSIGNED:
            summary.auto_assigned += 1
            claimed.add(best.candidate_id)
            logger.info(
                f"[AUTO-ASSIGN] {record.get('full_name')} -> {best.candidate.get('full_name')} "
                f"(confidence: {best.confidence:.1f})"
            )
        elif disposition is Disposition.NEEDS_REVIEW:
            summary.needs_review += 1
            logger.info(
                f"[REVIEW] {record.get('full_name')} -> {best.candidate.get('full_name')} "
                f"(confidence: {best.confidence:.1f}, band: {best.band.value})"
            )
        else:
            summary.rejected += 1
            logger.info(
                f"[REJECT] {record.get('full_name')} "
                f"(confidence: {best.confidence if best else 0.0:.1f})"
            )

        summary.outcomes.append(RecordOutcome(
            index=index,
            record_ref=record_ref,
            disposition=disposition,
            confidence=decision.confidence,
            person_id=decision.person_id,
            debt_id=decision.debt_id,
        ))

    def import_records(
        self,
        records: Sequence[Mapping[str, Any]],
        company_id: Optional[str] = None,
        source: str = "crm_import",
    ) -> ImportResult:
        """
        Validate already-parsed records, tag the valid ones with their
        import provenance and run them through the batch.
        """
        import_batch = int(time.time() * 1000)
        valid = []
        invalid = []

        for index, record in enumerate(records):
            validation = self.validator.validate(record)
            if validation.valid:
                tagged = dict(record)
                tagged.setdefault("source", source)
                tagged["import_batch"] = import_batch
                tagged["original_index"] = index
                valid.append(tagged)
            else:
                invalid.append(InvalidRecord(
                    index=index,
                    record=record,
                    errors=validation.errors,
                    warnings=validation.warnings,
                    field=validation.failing_field,
                ))

        summary = self.process_batch(valid, company_id=company_id, validate=False)
        summary.total = len(records)
        summary.invalid_records = invalid

        return ImportResult(
            total=len(records),
            valid=len(valid),
            invalid=len(invalid),
            summary=summary,
        )
