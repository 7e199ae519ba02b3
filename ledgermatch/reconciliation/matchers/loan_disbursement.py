"""
LoanDisbursementMatcher

Matches bank debits (outgoing payments) to:
- Single loan disbursement transactions
- Several bank debits summing to one disbursement (grouped_disbursement)
"""

from typing import List

import structlog

from ...config import get_settings
from ...models import (
    BankEntry,
    CandidateMatch,
    LoanTransaction,
    LoanTransactionType,
    MatchContext,
    MatchMode,
    MatchType,
)
from ...utils.text_similarity import description_contains_name
from ..scoring import (
    apply_name_bonus,
    calculate_match_score,
    clamp_confidence,
    dates_within_days,
    format_currency,
    subset_tier_score,
)
from .base import find_entry_group, nearby_entries

logger = structlog.get_logger()


class LoanDisbursementMatcher:
    """Debits only."""

    name = "loan_disbursement"

    def __init__(self, priority: int = 85, enabled: bool = True):
        self.priority = priority
        self.enabled = enabled
        self.settings = get_settings()

    def can_match(self, entry: BankEntry, context: MatchContext) -> bool:
        return entry.is_debit

    def generate_matches(self, entry: BankEntry, context: MatchContext) -> List[CandidateMatch]:
        reference = context.reference
        disbursements = context.loan_transactions_of(LoanTransactionType.DISBURSEMENT)
        matches = []

        for tx in disbursements:
            if not dates_within_days(entry.statement_date, tx.transaction_date,
                                     self.settings.single_match_window_days):
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.LOAN_DISBURSEMENT,
                match_mode=MatchMode.MATCH,
                loan_transactions=(tx,),
                loan=reference.loan(tx.loan_id),
                borrower=reference.borrower_for(tx),
                loan_id=tx.loan_id,
                reason=f"Disbursement: {reference.borrower_label(tx)} - {format_currency(tx.amount_cents)}",
            ))

        matches.extend(self.find_grouped_matches(entry, context, disbursements))
        logger.debug("Disbursement candidates", entry_id=entry.id, candidates=len(matches))
        return matches

    def find_grouped_matches(
        self,
        entry: BankEntry,
        context: MatchContext,
        disbursements: List[LoanTransaction],
    ) -> List[CandidateMatch]:
        """Several bank debits (including this one) summing to one disbursement."""
        reference = context.reference
        pool = nearby_entries(entry, context, credits=False,
                              window_days=self.settings.subset_sum_window_days)
        if len(pool) < 2:
            return []

        matches = []
        for tx in disbursements:
            loan = reference.loan(tx.loan_id)
            borrower = reference.borrower_for(tx)
            name = (loan.borrower_name if loan else None) or (borrower.full_name if borrower else None) or ""

            group = find_entry_group(entry, tx, pool, name, self.settings)
            if group is None:
                continue

            matches.append(CandidateMatch(
                match_type=MatchType.LOAN_DISBURSEMENT,
                match_mode=MatchMode.GROUPED_DISBURSEMENT,
                loan_transactions=(tx,),
                grouped_entries=tuple(group.entries),
                loan=loan,
                borrower=borrower,
                loan_id=tx.loan_id,
                reason=(
                    f"Split disbursement: {len(group.entries)} payments -> "
                    f"{(loan.loan_number if loan else None) or 'Unknown'} ({reference.borrower_label(tx)})"
                ),
                metadata={
                    "all_same_day": group.all_same_day,
                    "all_near_transaction": group.all_near_transaction,
                },
            ))

        return matches

    def calculate_confidence(self, match: CandidateMatch, entry: BankEntry) -> float:
        name_score = 0.0
        if match.borrower is not None:
            name_score = description_contains_name(
                entry.description, match.borrower.full_name, match.borrower.business_name
            )

        if match.match_mode is MatchMode.GROUPED_DISBURSEMENT:
            score = subset_tier_score(
                match.metadata.get("all_same_day", False),
                match.metadata.get("all_near_transaction", False),
            )
            return clamp_confidence(apply_name_bonus(score, name_score, 0.05, 0.95), match.match_mode)

        if not match.loan_transactions:
            return 0.0

        score = calculate_match_score(entry, match.loan_transactions[0])
        return clamp_confidence(apply_name_bonus(score, name_score, 0.15, 0.99), match.match_mode)
