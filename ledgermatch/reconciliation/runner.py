"""
Suggestion runner - picks the best candidate per bank entry.

For each unreconciled bank entry, in date order:
1. Every enabled strategy that accepts the entry proposes candidates
2. Each candidate is scored by the strategy that produced it
3. The highest-scoring candidate wins if it clears the acceptance floor
4. The records it references are claimed so later entries cannot reuse them
"""

import time
from collections import Counter
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

import structlog

from ..config import get_settings
from ..models import (
    AuditAction,
    AuditEntry,
    BankEntry,
    CandidateMatch,
    ClaimSet,
    MatchContext,
    ReferenceData,
    Suggestion,
    SuggestionRunResult,
    SuggestionSummary,
)
from ..utils.audit_logger import AuditLogger
from .matchers import MatcherStrategy
from .registry import MatcherRegistry, create_matcher_set

logger = structlog.get_logger()

ScoredCandidate = Tuple[float, CandidateMatch, MatcherStrategy]


def best_candidate(
    entry: BankEntry,
    context: MatchContext,
    matchers: Iterable[MatcherStrategy],
) -> Optional[ScoredCandidate]:
    """
    Highest-scoring candidate over all strategies, regardless of the floor.

    Strategies are visited in the order given; a later candidate replaces the
    current best only with a strictly greater score.
    """
    best = None
    for matcher in matchers:
        if not matcher.enabled or not matcher.can_match(entry, context):
            continue

        for candidate in matcher.generate_matches(entry, context):
            score = matcher.calculate_confidence(candidate, entry)
            if best is None or score > best[0]:
                best = (score, candidate, matcher)

    return best


def run_matchers(
    entry: BankEntry,
    context: MatchContext,
    matchers: Iterable[MatcherStrategy],
    acceptance_floor: Optional[float] = None,
) -> Optional[Suggestion]:
    """Best suggestion for one entry, or None if nothing reaches the floor."""
    if acceptance_floor is None:
        acceptance_floor = get_settings().acceptance_floor

    best = best_candidate(entry, context, matchers)
    if best is None or best[0] < acceptance_floor:
        return None

    score, candidate, matcher = best
    return candidate.to_suggestion(entry, score, matcher.name)


def _date_order(entry: BankEntry) -> Tuple[bool, date]:
    return (entry.statement_date is None, entry.statement_date or date.min)


class SuggestionEngine:
    """
    Runs the matcher strategies over a batch of bank entries.

    Stateless between runs: every call to run() works on its own claim set
    unless the caller passes one in.
    """

    def __init__(self, registry: Optional[MatcherRegistry] = None):
        self.settings = get_settings()
        self.registry = registry or create_matcher_set(self.settings)

    def run(
        self,
        entries: List[BankEntry],
        reference: ReferenceData,
        claims: Optional[ClaimSet] = None,
    ) -> SuggestionRunResult:
        """
        Produce at most one suggestion per bank entry.

        Args:
            entries: Bank entries of one organization
            reference: Ledger records and lookups for the same organization
            claims: Records already claimed by the caller; updated in place

        Returns:
            SuggestionRunResult with suggestions keyed by entry id
        """
        start_time = time.time()
        result = SuggestionRunResult(run_id=str(uuid4()))
        audit = AuditLogger(result.run_id)
        claims = claims if claims is not None else ClaimSet()
        matchers = self.registry.enabled_matchers
        floor = self.settings.acceptance_floor

        pending = sorted((e for e in entries if not e.is_reconciled), key=_date_order)
        context = MatchContext(reference=reference, claims=claims, bank_entries=tuple(entries))

        logger.info(
            "Starting suggestion run",
            run_id=result.run_id,
            entries=len(entries),
            pending=len(pending),
            matchers=[m.name for m in matchers],
        )
        audit.log(AuditEntry(
            action=AuditAction.RUN_STARTED,
            message=f"Suggestion run over {len(pending)} unreconciled entries",
            details={"matchers": [m.name for m in matchers]},
        ))

        skipped = 0
        claimed_records = 0

        for entry in pending:
            if entry.id in claims.bank_entry_ids:
                skipped += 1
                audit.log(AuditEntry(
                    action=AuditAction.ENTRY_SKIPPED,
                    entry_id=entry.id,
                    message="Entry already part of a grouped suggestion",
                ))
                continue

            if not entry.is_matchable:
                skipped += 1
                audit.log(AuditEntry(
                    action=AuditAction.ENTRY_SKIPPED,
                    entry_id=entry.id,
                    message="Entry has no date or a zero amount",
                ))
                continue

            best = best_candidate(entry, context, matchers)

            if best is None:
                result.unmatched_entry_ids.append(entry.id)
                audit.log(AuditEntry(
                    action=AuditAction.NO_CANDIDATES,
                    entry_id=entry.id,
                    message="No candidates from any matcher",
                ))
                continue

            score, candidate, matcher = best
            if score < floor:
                result.unmatched_entry_ids.append(entry.id)
                audit.log(AuditEntry(
                    action=AuditAction.BELOW_THRESHOLD,
                    entry_id=entry.id,
                    matcher_name=matcher.name,
                    message=f"Best candidate {score:.2f} below floor {floor:.2f}",
                    details={"confidence": score, "reason": candidate.reason},
                ))
                continue

            suggestion = candidate.to_suggestion(entry, score, matcher.name)
            result.suggestions[entry.id] = suggestion
            audit.log(AuditEntry(
                action=AuditAction.SUGGESTION_MADE,
                entry_id=entry.id,
                record_ids=suggestion.referenced_record_ids,
                matcher_name=matcher.name,
                message=candidate.reason,
                details={
                    "confidence": score,
                    "match_mode": candidate.match_mode.value,
                    "grouped_entry_ids": suggestion.grouped_entry_ids,
                },
            ))

            claimed = claims.claim(candidate)
            # An entry with a suggestion is no longer free to join another group
            claims.bank_entry_ids.add(entry.id)
            claimed_records += len(claimed)

            # Earlier entries left unmatched may be absorbed by a later split
            for member_id in suggestion.grouped_entry_ids:
                if member_id != entry.id and member_id in result.unmatched_entry_ids:
                    result.unmatched_entry_ids.remove(member_id)
                    skipped += 1
                    audit.log(AuditEntry(
                        action=AuditAction.ENTRY_SKIPPED,
                        entry_id=member_id,
                        matcher_name=matcher.name,
                        message=f"Unmatched entry absorbed into grouped suggestion for {entry.id}",
                    ))

            if claimed or suggestion.grouped_entry_ids:
                audit.log(AuditEntry(
                    action=AuditAction.RECORDS_CLAIMED,
                    entry_id=entry.id,
                    record_ids=claimed,
                    matcher_name=matcher.name,
                    message=f"Claimed {len(claimed)} records",
                    details={"grouped_entry_ids": suggestion.grouped_entry_ids},
                ))

        result.summary = self._compute_summary(
            result,
            total_entries=len(entries),
            considered=len(pending) - skipped,
            skipped=skipped,
            claimed_records=claimed_records,
            processing_time=time.time() - start_time,
        )
        result.completed_at = datetime.utcnow()

        audit.log(AuditEntry(
            action=AuditAction.RUN_COMPLETED,
            message=(
                f"Suggested {result.summary.suggested_entries} of "
                f"{result.summary.considered_entries} entries"
            ),
        ))
        result.audit_log = audit.entries

        logger.info(
            "Suggestion run complete",
            run_id=result.run_id,
            suggested=result.summary.suggested_entries,
            unmatched=result.summary.unmatched_entries,
            skipped=result.summary.skipped_entries,
            claimed_records=claimed_records,
            processing_time=round(result.summary.processing_time_seconds, 3),
        )

        return result

    def _compute_summary(
        self,
        result: SuggestionRunResult,
        total_entries: int,
        considered: int,
        skipped: int,
        claimed_records: int,
        processing_time: float,
    ) -> SuggestionSummary:
        """Compute summary statistics."""
        suggestions = list(result.suggestions.values())
        confidences = [s.confidence for s in suggestions]

        return SuggestionSummary(
            total_entries=total_entries,
            considered_entries=considered,
            suggested_entries=len(suggestions),
            unmatched_entries=len(result.unmatched_entry_ids),
            skipped_entries=skipped,
            claimed_records=claimed_records,
            by_match_mode=dict(Counter(s.match_mode.value for s in suggestions)),
            by_matcher=dict(Counter(s.matcher_name for s in suggestions)),
            avg_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
            processing_time_seconds=processing_time,
        )


def generate_all_suggestions(
    entries: List[BankEntry],
    reference: ReferenceData,
    claims: Optional[ClaimSet] = None,
    registry: Optional[MatcherRegistry] = None,
) -> Dict[str, Suggestion]:
    """Suggestions keyed by bank entry id; entries without one are absent."""
    return SuggestionEngine(registry).run(entries, reference, claims).suggestions
